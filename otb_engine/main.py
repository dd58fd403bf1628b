import argparse
import json
import math
import sys

from tabulate import tabulate

from otb_engine.config import config
from otb_engine.exceptions import OTBError
from otb_engine.logging_setup import logger, get_logger
from otb_engine.models import ForecastScope, ForecastStatus, to_primitive
from otb_engine.utils.date_utils import convert_to_date
from otb_engine.utils.validation import number_field
from otb_engine.utils.loaders import (
    group_observations, load_observations_csv, load_plan_json,
    load_scenario_json, load_sku_inputs_json, load_snapshots_json,
    snapshot_from_record
)

def _print_json(payload):
    print(json.dumps(to_primitive(payload), indent=2, sort_keys=True, default=str))

def _fmt(value, pattern='{:.2f}'):
    if value is None:
        return '-'
    if isinstance(value, float) and math.isinf(value):
        return 'inf'
    return pattern.format(value)

def run_forecast(args):
    """Forecast every entity in an observation file.

    Args:
        args: Command-line arguments with forecast parameters
    """
    from otb_engine.services.forecast_service import ForecastService

    log = get_logger('forecast')
    log.info(f"Starting forecast with parameters: {args}")

    service = ForecastService()
    forecast_config = service.build_config({
        'primary_method': args.method,
        'lookback_weeks': args.lookback,
        'forecast_weeks': args.weeks,
        'exp_smooth_alpha': args.alpha,
    })

    grouped = group_observations(load_observations_csv(args.observations))
    if args.entity_id:
        grouped = {k: v for k, v in grouped.items() if k == args.entity_id}
        if not grouped:
            log.error(f"No observations found for {args.entity_id}")
            return False

    if args.compare:
        comparisons = {
            entity_id: service.compare_methods(observations, forecast_config)
            for entity_id, observations in grouped.items()
        }
        if args.json:
            _print_json(comparisons)
            return True
        for entity_id, comparison in comparisons.items():
            print(f"\n{entity_id}: {comparison['recommendation_reason']}")
            print(tabulate(
                [[c['method'], c['status'], _fmt(c['mape'], '{:.1%}'), c['rating'] or '-']
                 for c in comparison['comparison']],
                headers=['Method', 'Status', 'MAPE', 'Rating']
            ))
        return True

    results = {
        entity_id: service.run_forecast(observations, forecast_config, ForecastScope(entity_id=entity_id))
        for entity_id, observations in grouped.items()
    }
    runs = list(results.values())

    if args.json:
        _print_json({entity_id: run.to_dict() for entity_id, run in results.items()})
    else:
        table = []
        for entity_id, run in results.items():
            if run.status is ForecastStatus.COMPLETED:
                forecast = ', '.join(_fmt(v, '{:.1f}') for v in run.weekly_forecast)
            else:
                forecast = run.failure_reason
            table.append([entity_id, run.status.value, _fmt(run.accuracy, '{:.1%}'),
                          run.accuracy_rating or '-', forecast])
        print(tabulate(table, headers=['Entity', 'Status', 'Accuracy', 'Rating', 'Weekly Forecast']))

        if args.verbose:
            for entity_id, run in results.items():
                for insight in run.insights:
                    print(f"  {entity_id}: {insight}")

    failed = sum(1 for run in runs if run.status is ForecastStatus.FAILED)
    log.info(f"Forecast finished: {len(runs) - failed} completed, {failed} failed")
    return True

def run_optimize(args):
    """Produce markdown recommendations for a plan."""
    from otb_engine.services.markdown_service import MarkdownOptimizer

    log = get_logger('markdown')

    observations = load_observations_csv(args.observations) if args.observations else []
    plan = load_plan_json(args.plan)
    skus = load_sku_inputs_json(args.skus, observations)

    settings = {'max_workers': args.workers} if args.workers else None
    optimizer = MarkdownOptimizer(settings=settings)
    result = optimizer.optimize(plan, skus, as_of=convert_to_date(args.as_of) if args.as_of else None)

    if args.json:
        _print_json(result)
        return True

    print(tabulate(
        [[r.sku_id, r.recommended_action.value, _fmt(r.recommended_markdown_pct, '{:.0%}'),
          _fmt(r.predicted_sell_through, '{:.1%}'), _fmt(r.predicted_revenue),
          _fmt(r.projected_margin_loss), r.urgency_level.value, _fmt(r.projected_days_to_sell, '{:.0f}'),
          _fmt(r.confidence_score), 'Y' if r.is_overridden else '']
         for r in result.recommendations],
        headers=['SKU', 'Action', 'Markdown', 'Sell-Through', 'Revenue', 'Margin Loss', 'Urgency',
                 'Days to Sell', 'Confidence', 'Override']
    ))

    summary = result.summary
    print(f"\nPlan {result.plan_name}: {result.total_skus} SKUs, "
          f"expected revenue {summary.total_expected_revenue:.2f}, "
          f"margin loss {summary.total_margin_loss:.2f}, "
          f"avg confidence {summary.avg_confidence:.2f}, "
          f"{summary.overridden_skus} overridden")
    log.info(f"Optimization printed for plan {result.plan_name}")
    return True

def run_monitor(args):
    """Evaluate months of cover for category snapshots."""
    from otb_engine.services.replenishment_service import ReplenishmentMonitor

    monitor = ReplenishmentMonitor()
    grouped = group_observations(load_observations_csv(args.observations)) if args.observations else {}

    snapshots = []
    for record in load_snapshots_json(args.snapshots):
        if record.get('monthly_rate') is None and record['category_id'] in grouped:
            snapshots.append(monitor.build_snapshot(
                record['category_id'],
                grouped[record['category_id']],
                unit_cost=number_field(record, 'unit_cost', default=0.0),
                min_moc=number_field(record, 'min_moc', default=None),
                target_moc=number_field(record, 'target_moc', default=None),
                max_moc=number_field(record, 'max_moc', default=None),
                lead_time_days=number_field(record, 'lead_time_days', default=None),
                next_reorder_in_days=number_field(record, 'next_reorder_in_days', default=0.0)
            ))
        else:
            snapshots.append(snapshot_from_record(record, monitor.settings))

    result = monitor.evaluate_all(snapshots)
    summary = monitor.dashboard_summary(result)

    if args.json:
        _print_json({'moc_data': result.moc_data, 'alerts': result.alerts, 'summary': summary})
        return True

    print(tabulate(
        [[d.category_id, d.status.value, _fmt(d.current_moc), _fmt(d.target_moc),
          _fmt(d.monthly_rate, '{:.1f}'), _fmt(d.days_until_stockout, '{:.0f}'), _fmt(d.reorder_point, '{:.0f}')]
         for d in result.moc_data],
        headers=['Category', 'Status', 'MOC', 'Target', 'Monthly Rate', 'Days Left', 'Reorder Point']
    ))

    if result.alerts:
        print()
        print(tabulate(
            [[a.severity.value, a.category_id, a.alert_type.value,
              _fmt(a.suggested_order_qty, '{:.0f}'), _fmt(a.suggested_order_value), a.message]
             for a in result.alerts],
            headers=['Severity', 'Category', 'Alert', 'Order Qty', 'Order Value', 'Message']
        ))

    if summary['urgent_categories']:
        print(f"\nUrgent: {', '.join(summary['urgent_categories'])}")
    return True

def run_simulate(args):
    """Simulate a markdown scenario against a plan."""
    from otb_engine.services.markdown_service import MarkdownOptimizer
    from otb_engine.services.simulation_service import SimulationRunner

    observations = load_observations_csv(args.observations) if args.observations else []
    plan = load_plan_json(args.plan)
    skus = load_sku_inputs_json(args.skus, observations)
    scenario = load_scenario_json(args.scenario)

    runner = SimulationRunner(MarkdownOptimizer())
    result = runner.simulate(plan, skus, scenario, as_of=convert_to_date(args.as_of) if args.as_of else None)

    if args.json:
        print(result.to_json())
        return True

    print(tabulate(
        [[result.scenario_name, result.sku_count, _fmt(result.total_revenue),
          _fmt(result.total_units, '{:.0f}'), _fmt(result.avg_sell_through, '{:.1%}'),
          _fmt(result.projected_margin_loss), _fmt(result.remaining_stock, '{:.0f}'),
          result.risk.overall_risk.value]],
        headers=['Scenario', 'SKUs', 'Revenue', 'Units', 'Avg Sell-Through', 'Margin Loss',
                 'Remaining', 'Risk']
    ))

    if result.weekly_projections:
        print()
        print(tabulate(
            [[w.week_number, w.week_start.isoformat(), _fmt(w.opening_stock, '{:.0f}'),
              _fmt(w.projected_units, '{:.1f}'), _fmt(w.projected_revenue), _fmt(w.closing_stock, '{:.0f}'),
              _fmt(w.cumulative_sell_through, '{:.1%}')]
             for w in result.weekly_projections],
            headers=['Week', 'Start', 'Opening', 'Units', 'Revenue', 'Closing', 'Cum. Sell-Through']
        ))

    for warning in result.warnings:
        print(f"Warning: {warning}")
    return True

def build_parser():
    parser = argparse.ArgumentParser(description='Open-to-Buy Decision Engine')
    parser.add_argument('--config', type=str, help='Path to a settings.ini file')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Forecast command
    forecast_parser = subparsers.add_parser('forecast', help='Generate demand forecasts')
    forecast_parser.add_argument('observations', help='Observation CSV (entity_id,week,units_sold,stock_on_hand)')
    forecast_parser.add_argument('--entity-id', type=str, help='Forecast one entity only')
    forecast_parser.add_argument('--method', type=str, help='MOVING_AVERAGE, EXPONENTIAL_SMOOTHING, TREND_ADJUSTED or ENSEMBLE')
    forecast_parser.add_argument('--lookback', type=int, help='Lookback window in weeks')
    forecast_parser.add_argument('--weeks', type=int, help='Weeks to forecast')
    forecast_parser.add_argument('--alpha', type=float, help='Exponential smoothing alpha')
    forecast_parser.add_argument('--compare', action='store_true', help='Compare all methods by held-out MAPE')
    forecast_parser.add_argument('--json', action='store_true', help='Print JSON')
    forecast_parser.add_argument('--verbose', '-v', action='store_true', help='Display insights')

    # Optimize command
    optimize_parser = subparsers.add_parser('optimize', help='Recommend markdowns for a plan')
    optimize_parser.add_argument('plan', help='Markdown plan JSON')
    optimize_parser.add_argument('skus', help='SKU list JSON')
    optimize_parser.add_argument('--observations', type=str, help='Observation CSV with SKU history')
    optimize_parser.add_argument('--as-of', type=str, help='Recommendation date (YYYY-MM-DD)')
    optimize_parser.add_argument('--workers', type=int, help='Concurrent SKU evaluations')
    optimize_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Monitor command
    monitor_parser = subparsers.add_parser('monitor', help='Check months of cover and raise alerts')
    monitor_parser.add_argument('snapshots', help='Category snapshot JSON')
    monitor_parser.add_argument('--observations', type=str, help='Observation CSV keyed by category')
    monitor_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Simulate command
    simulate_parser = subparsers.add_parser('simulate', help='Simulate a markdown scenario')
    simulate_parser.add_argument('plan', help='Markdown plan JSON')
    simulate_parser.add_argument('skus', help='SKU list JSON')
    simulate_parser.add_argument('scenario', help='Scenario JSON')
    simulate_parser.add_argument('--observations', type=str, help='Observation CSV with SKU history')
    simulate_parser.add_argument('--as-of', type=str, help='Recommendation date (YYYY-MM-DD)')
    simulate_parser.add_argument('--json', action='store_true', help='Print JSON')

    return parser

COMMANDS = {
    'forecast': run_forecast,
    'optimize': run_optimize,
    'monitor': run_monitor,
    'simulate': run_simulate,
}

def main(argv=None):
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        config.load(args.config)
        logger.reconfigure()

    if args.command not in COMMANDS:
        parser.print_help()
        return 1

    log = logger.app_logger
    try:
        success = COMMANDS[args.command](args)
    except OTBError as e:
        log.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 0 if success else 1

if __name__ == "__main__":
    sys.exit(main())

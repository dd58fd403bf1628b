import os
import configparser
from pathlib import Path

CONFIG_ENV_VAR = 'OTB_ENGINE_CONFIG'

DEFAULTS = {
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True',
        'file_output': 'True'
    },
    'FORECAST': {
        'default_lookback_weeks': '12',
        'default_forecast_weeks': '8',
        'default_moving_avg_weight': '0.25',
        'default_exp_smooth_weight': '0.35',
        'default_trend_weight': '0.40',
        'exp_smooth_alpha': '0.3',
        'confidence_level': '0.90',
        'trend_insight_threshold': '0.05',
        'volatility_cv_threshold': '0.5'
    },
    'MARKDOWN': {
        'elasticity': '1.5',
        'staleness_woc_multiplier': '2.0',
        'removal_ratio': '0.5',
        'default_confidence': '0.5',
        'max_workers': '4'
    },
    'REPLENISHMENT': {
        'warning_ratio': '0.8',
        'days_per_month': '30',
        'default_lead_time_days': '30',
        'safety_stock_days': '14',
        'acceleration_threshold': '0.05',
        'rate_window_weeks': '4',
        'default_min_moc': '1.5',
        'default_target_moc': '2.5',
        'default_max_moc': '4.0'
    }
}

class Config:
    """Configuration manager for the Inventory Decision Engine."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        self._config_path = Path(os.environ.get(CONFIG_ENV_VAR, Path('config') / 'settings.ini'))
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(DEFAULTS)

        # Values from the settings file override the built-in defaults
        if self._config_path.exists():
            self._config.read(self._config_path)

        self._initialized = True

    def reload(self):
        """Reset to defaults and re-read the settings file."""
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(DEFAULTS)
        if self._config_path.exists():
            self._config.read(self._config_path)

    def load(self, config_path):
        """Switch to another settings file and re-read it.

        Loggers already handed out keep their handlers until
        Logger.reconfigure() is called.
        """
        self._config_path = Path(config_path)
        self.reload()

    @property
    def config_path(self):
        return self._config_path

    def get(self, section, key, default=None):
        """Get configuration value."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', True)
        }

    @property
    def forecast_config(self):
        """Get forecasting defaults."""
        return {
            'default_lookback_weeks': self.get_int('FORECAST', 'default_lookback_weeks', 12),
            'default_forecast_weeks': self.get_int('FORECAST', 'default_forecast_weeks', 8),
            'default_moving_avg_weight': self.get_float('FORECAST', 'default_moving_avg_weight', 0.25),
            'default_exp_smooth_weight': self.get_float('FORECAST', 'default_exp_smooth_weight', 0.35),
            'default_trend_weight': self.get_float('FORECAST', 'default_trend_weight', 0.40),
            'exp_smooth_alpha': self.get_float('FORECAST', 'exp_smooth_alpha', 0.3),
            'confidence_level': self.get_float('FORECAST', 'confidence_level', 0.90),
            'trend_insight_threshold': self.get_float('FORECAST', 'trend_insight_threshold', 0.05),
            'volatility_cv_threshold': self.get_float('FORECAST', 'volatility_cv_threshold', 0.5)
        }

    @property
    def markdown_config(self):
        """Get markdown optimization settings."""
        return {
            'elasticity': self.get_float('MARKDOWN', 'elasticity', 1.5),
            'staleness_woc_multiplier': self.get_float('MARKDOWN', 'staleness_woc_multiplier', 2.0),
            'removal_ratio': self.get_float('MARKDOWN', 'removal_ratio', 0.5),
            'default_confidence': self.get_float('MARKDOWN', 'default_confidence', 0.5),
            'max_workers': self.get_int('MARKDOWN', 'max_workers', 4)
        }

    @property
    def replenishment_config(self):
        """Get replenishment monitoring settings."""
        return {
            'warning_ratio': self.get_float('REPLENISHMENT', 'warning_ratio', 0.8),
            'days_per_month': self.get_float('REPLENISHMENT', 'days_per_month', 30.0),
            'default_lead_time_days': self.get_float('REPLENISHMENT', 'default_lead_time_days', 30.0),
            'safety_stock_days': self.get_float('REPLENISHMENT', 'safety_stock_days', 14.0),
            'acceleration_threshold': self.get_float('REPLENISHMENT', 'acceleration_threshold', 0.05),
            'rate_window_weeks': self.get_int('REPLENISHMENT', 'rate_window_weeks', 4),
            'default_min_moc': self.get_float('REPLENISHMENT', 'default_min_moc', 1.5),
            'default_target_moc': self.get_float('REPLENISHMENT', 'default_target_moc', 2.5),
            'default_max_moc': self.get_float('REPLENISHMENT', 'default_max_moc', 4.0)
        }

# Global config instance
config = Config()

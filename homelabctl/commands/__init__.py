from . import bootstrap, init_config, install

__all__ = ['bootstrap', 'init_config', 'install']

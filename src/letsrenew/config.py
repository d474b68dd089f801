import collections
import collections.abc
import copy
import glob
import json
import os

import yaml

from .errors import ConfigurationError
from .session import CsrInfo, LETS_ENCRYPT_DIRECTORY_URL, LETS_ENCRYPT_STAGING_DIRECTORY_URL


Profile = collections.namedtuple('Profile', ['name', 'domains'])

CONFIG_EXTENSIONS = ('.json', '.yaml', '.yml')
KEY_CURVES = ('secp256r1', 'secp384r1', 'secp521r1')

DEFAULTS = {
    'account': {
        'email': None,
    },
    'settings': {
        'staging': False,
        'log_level': 'debug',
        'color_output': True,
        'renewal_days': 7,
        'max_authorization_attempts': 60,
        'authorization_delay': 1,
        'max_finalize_attempts': 5,
        'finalize_delay': 1,
        'key_curve': 'secp256r1',
        'acme_directory_url': LETS_ENCRYPT_DIRECTORY_URL,
        'acme_staging_directory_url': LETS_ENCRYPT_STAGING_DIRECTORY_URL,
        'acme_directory_verify_ssl': True,
    },
    'csr': {
        'country': 'CZ',
        'state': '',
        'locality': 'Prague',
        'organization': 'artipa.software',
        'organization_unit': '',
        'common_name': None,
    },
    'directories': {
        'challenge': '/var/www/acme-challenge',
        'certificate': '/etc/ssl/letsrenew',
        'account': '/var/local/letsrenew/accounts',
        'log': '/var/log/letsrenew',
        'pid': '/var/run',
    },
    'file_names': {
        'log': 'letsrenew.log',
    },
}

POSITIVE_INT_SETTINGS = ('max_authorization_attempts', 'max_finalize_attempts')
NON_NEGATIVE_INT_SETTINGS = ('renewal_days', 'authorization_delay', 'finalize_delay')


def load_yaml(stream, object_pairs_hook=dict):
    class OrderedLoader(yaml.SafeLoader):
        pass

    def construct_mapping(loader, node):
        loader.flatten_mapping(node)
        return object_pairs_hook(loader.construct_pairs(node))

    OrderedLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, construct_mapping)
    return yaml.load(stream, OrderedLoader)


def load_config_file(config_file_path):
    _, extension = os.path.splitext(config_file_path)
    try:
        with open(config_file_path) as config_file:
            if ('.json' == extension):
                return json.load(config_file, object_pairs_hook=collections.OrderedDict)
            return load_yaml(config_file, object_pairs_hook=collections.OrderedDict) or collections.OrderedDict()
    except Exception as error:
        raise ConfigurationError('Error reading config file ' + config_file_path + ': ' + str(error)) from error


def find_configs(config_file_path):
    config_dir = os.path.dirname(config_file_path)
    file_paths = []
    for extension in CONFIG_EXTENSIONS:
        file_paths += glob.glob(os.path.join(config_dir, 'conf.d', '*' + extension))
    return file_paths


def merge_dicts(base, extra):
    if (not isinstance(base, dict)):
        base = collections.OrderedDict()
    for key, value in extra.items():
        if (isinstance(value, dict)):
            base[key] = merge_dicts(base.get(key), value)
        else:
            base[key] = value
    return base


def load_config(file_path, search_paths=('.',), output=None):
    """Find and read the config file, returning ``(config, config_file_path)``.

    Without an extension every supported extension is tried in each search
    path. Files in a ``conf.d`` directory beside the config are merged in.
    """
    file_path = os.path.expanduser(file_path)
    search_paths = [''] if (os.path.isabs(file_path)) else search_paths
    file_path, file_extension = os.path.splitext(file_path)
    extensions = CONFIG_EXTENSIONS if not file_extension else [file_extension]
    for search_path in search_paths:
        for extension in extensions:
            config_file_path = os.path.join(search_path, file_path) + extension
            if (os.path.isfile(config_file_path)):
                if (output):
                    output.detail('Reading config from ', config_file_path, '\n')
                config = load_config_file(config_file_path)
                for extra_file_path in sorted(find_configs(config_file_path)):
                    if (output):
                        output.detail('Reading config from ', extra_file_path, '\n')
                    config = merge_dicts(config, load_config_file(extra_file_path))
                return (config, config_file_path)
    raise ConfigurationError('Config file ' + file_path + file_extension + ' not found')


def _get_list(value):
    return value if (isinstance(value, collections.abc.Iterable) and not isinstance(value, (str, dict))) else [] if (value is None) else [value]


def _parse_profiles(profiles_config):
    profiles = []
    if (isinstance(profiles_config, dict)):
        items = []
        for name, value in profiles_config.items():
            items.append((name, value.get('domains') if isinstance(value, dict) else value))
    elif (isinstance(profiles_config, list)):
        items = []
        for entry in profiles_config:
            if (not isinstance(entry, dict) or ('name' not in entry)):
                raise ConfigurationError('Profile entries must be mappings with name and domains')
            items.append((entry['name'], entry.get('domains')))
    else:
        raise ConfigurationError('No profiles configured')

    names = set()
    for name, domains in items:
        name = str(name)
        if (name in names):
            raise ConfigurationError('Duplicate profile ' + name)
        names.add(name)
        domains = [domain.strip() for domain in _get_list(domains) if isinstance(domain, str) and domain.strip()]
        if (not domains):
            raise ConfigurationError('Profile ' + name + ' has no domains')
        profiles.append(Profile(name, tuple(domains)))
    if (not profiles):
        raise ConfigurationError('No profiles configured')
    return tuple(profiles)


class Configuration(object):
    """Validated, read-only run configuration."""

    def __init__(self, config, config_file_path=''):
        self.config_file_path = config_file_path
        self._config = copy.deepcopy(DEFAULTS)
        for section_name, section in (config or {}).items():
            if (section is None):
                continue
            if (isinstance(section, dict) and isinstance(self._config.get(section_name), dict)):
                self._config[section_name].update(copy.deepcopy(section))
            else:
                self._config[section_name] = copy.deepcopy(section)
        self._validate()
        self.profiles = _parse_profiles(self._config.get('profiles'))

    def _validate(self):
        email = self.account('email')
        if (not email or not isinstance(email, str)):
            raise ConfigurationError('Account email is required')
        for key in POSITIVE_INT_SETTINGS + NON_NEGATIVE_INT_SETTINGS:
            try:
                value = int(self.setting(key))
            except (TypeError, ValueError):
                raise ConfigurationError('Setting ' + key + ' must be an integer') from None
            if ((value < 1) if (key in POSITIVE_INT_SETTINGS) else (value < 0)):
                raise ConfigurationError('Setting ' + key + ' out of range: ' + str(value))
        if (str(self.setting('key_curve')).lower() not in KEY_CURVES):
            raise ConfigurationError('Unsupported key curve: ' + str(self.setting('key_curve')))
        if (self.setting('log_level') not in (None, 'none', 'normal', 'verbose', 'debug', 'detail')):
            raise ConfigurationError('Unknown log level: ' + str(self.setting('log_level')))
        for file_type in ('challenge', 'certificate', 'account'):
            if (not self.directory(file_type)):
                raise ConfigurationError('Directory ' + file_type + ' is required')

    def _get(self, section_name, key, default=None):
        return self._config.get(section_name, {}).get(key, default)

    def account(self, key):
        return self._get('account', key)

    def setting(self, key):
        return self._get('settings', key)

    def setting_int(self, key):
        return int(self.setting(key))

    def directory(self, file_type):
        directory = self._get('directories', file_type, '')
        return os.path.normpath(os.path.join(os.path.dirname(self.config_file_path), directory)) if (directory) else directory

    def file_name(self, file_type):
        return self._get('file_names', file_type, '')

    @property
    def email(self):
        return self.account('email')

    @property
    def staging(self):
        return bool(self.setting('staging'))

    @property
    def directory_url(self):
        return self.setting('acme_staging_directory_url') if (self.staging) else self.setting('acme_directory_url')

    @property
    def key_curve(self):
        return str(self.setting('key_curve')).lower()

    def csr_info(self):
        csr = self._config.get('csr', {})
        return CsrInfo(country=csr.get('country') or '', state=csr.get('state') or '', locality=csr.get('locality') or '',
                       organization=csr.get('organization') or '', organization_unit=csr.get('organization_unit') or '',
                       common_name=csr.get('common_name') or None)

    def as_dict(self):
        config = copy.deepcopy(self._config)
        config['profiles'] = collections.OrderedDict((profile.name, list(profile.domains)) for profile in self.profiles)
        return config

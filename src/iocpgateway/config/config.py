"""
Loads layered configuration files.

A configuration is made of several files with the same base name, found in a directory:

- ``name.default.cfg``  the defaults
- ``name.<os>.cfg``     platform specific values (``name.linux.cfg``, ``name.osx.cfg``, ``name.windows.cfg``)
- ``~/name.cfg``        the user's overrides
- any further files given explicitly, such as one named on the command line

Later files override earlier ones. The merged result is validated against ``name.schema.cfg``.
"""
import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, flatten_errors
from configobj.validate import Validator

logger = logging.getLogger(__name__)

# every configuration file ends with this
config_extension = '.cfg'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('gateway', 'default')
    'gateway.default'
    >>> config_flavor('gateway')
    'gateway'
    """
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory or '', name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True):
    """
    Reads one configuration file. Parse errors name the file they came from.
    :param must_exist:  when False, a missing file reads as an empty configuration
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Reads ``<name>.<subpart>.cfg`` from the directory, or ``<name>.cfg`` without a subpart.
    A missing file reads as empty.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    return load_config_file_base(file, False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def validation_errors(config, result):
    """
    Lists the problems found by validation.
    :return: a list of (section path, key, message) tuples. The key is None for a missing section.
    """
    errors = []
    for section_list, key, res in flatten_errors(config, result):
        if key is None:
            message = 'missing section'
        elif res is False:
            message = 'missing value'
        else:
            message = str(res)
        errors.append((tuple(section_list), key, message))
    return errors


def describe_error(error):
    """
    >>> describe_error((('server',), 'port', 'missing value'))
    'server.port: missing value'
    >>> describe_error((('endpoints', 'left'), None, 'missing section'))
    'endpoints.left: missing section'
    """
    section_list, key, message = error
    path = '.'.join(section_list + ((key,) if key is not None else ()))
    return "%s: %s" % (path, message)


def load_config(name, directory, files=()):
    """
    Merges the layers of a configuration, each overriding the ones before it:
    the defaults, the platform file, the user's file in the home directory, and then each of
    the given files, which must exist. The result is validated against the schema file.
    :param directory: the location of the default, platform and schema files
    :param files: further configuration files that override the others
    :return: the validated configuration and a list of validation errors, see validation_errors()
    """
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.expanduser(
        '~/' + name + config_extension), must_exist=False)
    config = ConfigObj(configspec=config_filename(config_flavor(name, 'schema'), directory), interpolation='Template')
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    for file in files:
        logger.debug("loading configuration %s" % file)
        config.merge(load_config_file_base(file))

    result = config.validate(Validator(), preserve_errors=True)
    return config, ([] if result is True else validation_errors(config, result))

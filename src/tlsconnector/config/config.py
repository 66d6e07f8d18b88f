import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from configobj.validate import Validator

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'

# the specialization holding the configspec the merged configuration is validated against
schema_flavor = 'schema'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('sslconn_test', 'default')
    'sslconn_test.default'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    """
    Determines the location of a config file in the given directory.
    """
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True) -> ConfigObj:
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file, empty if the file does not exist
    """
    try:
        if not must_exist and not os.path.exists(file):
            return ConfigObj()
        return ConfigObj(file, interpolation='Template', file_error=must_exist)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name. A missing file gives an empty configuration.
    """
    return load_config_file_base(config_filename(config_flavor(name, flavor), directory), False)


def load_configspec(file) -> ConfigObj:
    """
    Loads a configspec. Checks such as integer(min=1, max=65535) are kept whole rather than parsed
    as lists. A missing file gives an empty configspec, which validates anything.
    """
    if not os.path.exists(file):
        return ConfigObj(list_values=False, _inspec=True)
    try:
        return ConfigObj(file, list_values=False, _inspec=True)
    except ConfigObjError as e:
        raise type(e)(str(e) + " at " + file)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def user_config_file(name):
    return os.path.expanduser(os.path.join('~', name + config_extension))


def load_config(name, directory) -> ConfigObj:
    """
    Loads all the configuration files that relate to the given name.
    Configurations are merged in this order, later values replacing earlier ones:
    - the default specialization
    - the platform specialization
    - the user override, from the home directory
    - the base configuration
    The merged configuration is then validated against the schema specialization.
    :param name: the base name of the configuration files
    :param directory: the location of the configuration files
    :raises ConfigObjError: when the merged configuration fails validation
    """
    config = ConfigObj()
    config.merge(config_flavor_file(name, directory, 'default'))
    config.merge(config_flavor_file(name, directory, os_name()))
    config.merge(load_config_file_base(user_config_file(name), must_exist=False))
    config.merge(config_flavor_file(name, directory))

    config.configspec = load_configspec(config_filename(config_flavor(name, schema_flavor), directory))
    result = config.validate(Validator())
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:    The root configuration
    :param path:    An iterable of the section names to descend through
    :return: The configuration section identified by the path, or None if there is no such section
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Sets the attributes of the target that have the same name as a value in the configuration.
    Values without a matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def apply_conf_path(conf: Section, name_parts, target):
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def reconstruct_name(path, package_depth):
    """
    Determines the module name from a module file and the depth of its package.

    >>> reconstruct_name('C:/drive/dir/package1/package2/module.py', 2)
    'package1.package2.module'
    >>> reconstruct_name('C:\\\\drive\\\\dir\\\\module.py', 0)
    'module'
    """
    parts = path.replace('\\', '/').split('/')
    parts[-1] = os.path.splitext(parts[-1])[0]
    return '.'.join(parts[-package_depth - 1:])


def fq_module_name(module):
    """
    Retrieves the fully qualified name of the module. When the module is run as a script its name
    is '__main__', so the name is rebuilt from the file and the package.
    """
    if module.__name__ != '__main__':
        return module.__name__
    depth = len(module.__package__.split('.')) if module.__package__ else 0
    return reconstruct_name(module.__file__, depth)


def configure_module(module, config_name=None):
    """
    Applies the configuration to the given module's globals.
    The configuration files are located beside the module, and named after the module unless
    config_name is given. The values applied are those in the section path that matches the
    module's fully qualified name (x.y.z.source_file).
    """
    fqname = fq_module_name(module)
    if not config_name:
        config_name = fqname.split('.')[-1]
    conf = load_config(config_name, os.path.dirname(module.__file__))
    logger.debug("configuring %s from %s" % (fqname, config_name))
    apply_conf_path(conf, fqname.split('.'), module)

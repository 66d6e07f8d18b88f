import os
import sys
import unittest
from unittest.mock import Mock, patch

from configobj import ConfigObjError, ConfigObj
from hamcrest import assert_that, is_, equal_to, has_property, is_not, calling, raises, none

from tlsconnector.config.config import configure_module, config_filename, config_flavor, load_config_file_base, \
    load_config, reconstruct_name, fq_module_name, map_os_name, fetch_conf_path, apply_conf_path, load_configspec

config_name = 'config_test'
value1 = None
value2 = None
value3 = None
value4 = None

this_module = sys.modules[__name__]
this_dir = os.path.dirname(__file__)


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        # keep a user's own configuration out of the tests
        patcher = patch('tlsconnector.config.config.user_config_file',
                        return_value=os.path.join(this_dir, 'no_such_user.cfg'))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_config_file_not_found(self):
        assert_that(calling(load_config_file_base).with_args('blah'), raises(IOError))

    def test_config_file_optional(self):
        assert_that(load_config_file_base('blah', must_exist=False), is_(equal_to(ConfigObj())))

    def test_config_file_invalid_schema(self):
        assert_that(calling(load_config).with_args('config_test_invalid_schema', this_dir),
                    raises(ConfigObjError, "the config file config_test_invalid_schema failed validation"))

    def test_config_file_invalid_syntax(self):
        assert_that(calling(load_config_file_base).with_args(os.path.join(this_dir, 'config_test_invalid_syntax.cfg')),
                    raises(ConfigObjError, "Section too nested at line 1. at .*config_test_invalid_syntax.cfg"))

    def test_can_retrieve_config_file(self):
        name = config_flavor(config_name, "default")
        file = config_filename(name, this_dir)
        assert_that(os.path.exists(file), is_(True),
                    "expected config path %s to exist" % file)

    def test_configspec_keeps_checks_whole(self):
        spec = load_configspec(config_filename(config_flavor(config_name, 'schema'), this_dir))
        section = fetch_conf_path(spec, ['tlsconnector', 'config', 'config_test'])
        assert_that(section['value4'], is_('integer(min=1, max=65535, default=50)'))

    def test_missing_configspec(self):
        assert_that(load_configspec(os.path.join(this_dir, 'missing.schema.cfg')), is_(equal_to(ConfigObj())))

    def test_can_apply_module(self):
        configure_module(this_module)
        assert_that(value1, is_(equal_to('def')))
        assert_that(value2, is_(equal_to(['1', '2', '3'])))
        assert_that(value3, is_(4))
        assert_that(value4, is_(50))
        assert_that(this_module, is_not(has_property("missing_value")))

    def test_configure_module(self):
        configure_module(this_module, 'config_test_alt')
        assert_that(value3, is_('alt'))

    def test_reconstruct_name(self):
        assert_that(reconstruct_name('C:/drive/dir/package1/package2/module.py', 2), is_('package1.package2.module'))
        assert_that(reconstruct_name('C:\\drive\\dir\\module.py', 0), is_('module'))

    def test_fq_module_name_with_name(self):
        module = Mock()
        module.__name__ = 'one.two.three'
        module.__package__ = 'one.two'
        assert_that(fq_module_name(module), is_('one.two.three'))

    def test_fq_module_name_as_main(self):
        module = Mock()
        module.__name__ = '__main__'
        module.__package__ = 'one.two'
        module.__file__ = '/some/place/one/two/three.py'
        assert_that(fq_module_name(module), is_('one.two.three'))

    def test_fq_module_name_as_main_no_package(self):
        module = Mock()
        module.__name__ = '__main__'
        module.__package__ = ''
        module.__file__ = '/some/place/three.py'
        assert_that(fq_module_name(module), is_('three'))

    def test_map_os_name(self):
        assert_that(map_os_name('Windows'), is_('windows'))
        assert_that(map_os_name('Darwin'), is_('osx'))
        assert_that(map_os_name('darwin'), is_('osx'))
        assert_that(map_os_name('Linux'), is_('linux'))

    def test_non_existent_config_path(self):
        sut = ConfigObj()
        assert_that(fetch_conf_path(sut, ['abcd']), is_(none()))

    def test_non_existent_apply_config_path(self):
        sut = ConfigObj()
        target = Mock(spec=[])
        apply_conf_path(sut, ['abcd'], target)
        assert_that(target, is_not(has_property('abcd')))


if __name__ == '__main__':  # pragma: no cover
    unittest.main()

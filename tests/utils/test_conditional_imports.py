
import pytest

from geoutm.utils.conditional_imports import ConditionalPackageInterceptor


def test_find_spec_unregistered():
    assert ConditionalPackageInterceptor.find_spec('not_a_registered_package', None) is None


def test_find_spec_registered(monkeypatch):
    monkeypatch.setattr(ConditionalPackageInterceptor, 'PERMITTED_PACKAGES', {})
    ConditionalPackageInterceptor.permit_packages({'fake_geoutm_extra': 'geoutm[fake]'})

    with pytest.raises(ModuleNotFoundError, match=r'pip install geoutm\[fake\]'):
        ConditionalPackageInterceptor.find_spec('fake_geoutm_extra', None)


def test_permit_packages_type():
    with pytest.raises(TypeError):
        ConditionalPackageInterceptor.permit_packages(['pyproj'])  # type: ignore


def test_registered_at_import():
    import geoutm  # pylint: disable=import-outside-toplevel
    assert ConditionalPackageInterceptor.PERMITTED_PACKAGES['pyproj'] == 'geoutm[proj]'
    assert geoutm.__version__

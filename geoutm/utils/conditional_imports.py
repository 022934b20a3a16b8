"""
Turns import errors for optional dependencies into instructions naming the
package extra that provides them.
"""

__all__ = ['ConditionalPackageInterceptor']

from typing import Dict

from geoutm.utils.mixins import LoggingMixin


class ConditionalPackageInterceptor(LoggingMixin):
    """
    A last-resort import finder. When an import fails for one of the registered
    optional packages, raises a ModuleNotFoundError that says which extra to install
    instead of the bare "No module named ..." error.

    To use, register the packages and append the class to sys.meta_path:

        ConditionalPackageInterceptor.permit_packages({'pyproj': 'geoutm[proj]'})
        sys.meta_path.append(ConditionalPackageInterceptor)

    Since it is appended last, it is only consulted once every other finder has
    failed to locate the module.
    """

    PERMITTED_PACKAGES: Dict[str, str] = {}

    @classmethod
    def permit_packages(cls, packages: Dict[str, str]) -> None:
        """
        Registers optional packages.

        Args:
            packages:
                Mapping of import name to the pip requirement that provides it,
                e.g. {'pyproj': 'geoutm[proj]'}

        Returns:
            None
        """
        if not isinstance(packages, dict):
            raise TypeError(
                f"Permitted packages must be submitted as a dict, not {type(packages)}"
            )

        cls.PERMITTED_PACKAGES.update(packages)

    @classmethod
    def find_spec(  # pylint: disable=unused-argument
            cls, name, path, target=None
    ):
        """
        Called by importlib after every other finder failed. Returns None (module not
        found, as usual) unless the module is a registered optional package.
        """
        if name not in cls.PERMITTED_PACKAGES:
            return None

        raise ModuleNotFoundError(
            f"You are attempting to use a feature which requires an optional installation "
            f"({name}). Install it with:\n"
            f"    pip install {cls.PERMITTED_PACKAGES[name]}",
            name=name,
        )

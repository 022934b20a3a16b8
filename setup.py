"""Package build script"""
import setuptools

ver_file = 'VERSION'

# Pull package version number from the VERSION file
with open(ver_file, 'r', encoding='utf-8') as f:
    __version__ = f.read().strip()

if not __version__:
    raise EnvironmentError(f'Could not find valid version number in {ver_file}; aborting setup')

with open("./README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="geoutm",
    version=__version__,
    author="",
    author_email="",
    description="WGS84 <-> UTM projection with float64, vectorized and float32-pair accelerator backends.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    # geoutm.utils has no __init__.py
    packages=setuptools.find_namespace_packages(
        include=('geoutm', 'geoutm.*'),
    ),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent"
    ],
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.20',
    ],
    extras_require={
        'proj': ['pyproj'],
        'test': ['pytest', 'pyproj'],
    },
)

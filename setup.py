from pathlib import Path

from setuptools import setup, find_packages

# Read README for long description
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

setup(
    name='native-pack',
    version='1.0.0',
    description='Package a native library for x86, x64, ARM and ARM64 and place the right binary at build time',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Microsoft Corporation',
    packages=find_packages(include=['native_pack', 'native_pack.*', 'build_native', 'build_native.*']),
    # Requires >= Python 3.10
    python_requires='>=3.10',
    install_requires=[
        'typer>=0.9.0',
        'rich>=13.0.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'nativepack=native_pack.cli:main',
        ],
    },
    classifiers=[
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Build Tools',
    ],
    zip_safe=False,
)

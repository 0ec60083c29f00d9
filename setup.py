from setuptools import setup
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(name='kswift',
      version='1.0.0',
      description='Swift 5 symbol demangler/remangler and value witness table model.',
      long_description=long_description,
      long_description_content_type='text/markdown',
      python_requires='>=3.7',
      author='cynder',
      url='https://github.com/0cyn/ktool',
      install_requires=['Pygments'],
      extras_require={
            'test': ['pytest']
      },
      packages=['kswift', 'lib0cyn'],
      package_dir={
            'kswift': 'src/kswift',
            'lib0cyn': 'src/lib0cyn'
      },
      classifiers=[
            'Programming Language :: Python :: 3',
            'License :: OSI Approved :: MIT License',
            'Operating System :: OS Independent'
      ]
      )

from setuptools import setup, find_packages

setup(name='pinio',
      version='0.0.1',
      description='Poll-based, single-task asynchronous operations with pinned state and synchronous cancellation',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Framework :: Trio",
      ],
      keywords='async futures poll cancellation timers',
      license='MIT',
      python_requires='>=3.11',
      install_requires=[
          'trio>=0.22',
          'outcome>=1.3.0',
      ],
      extras_require={
          'test': ['pytest'],
      },
      packages=find_packages(include=['pinio', 'pinio.*']),
      include_package_data=True,
)

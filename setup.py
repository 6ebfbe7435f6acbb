from setuptools import setup
import version


setup(
    name='git-blame-compare',
    version=version.get_git_version(),
    description='git-blame-compare checks an alternative git-blame '
        'implementation against git itself',
    author='Matt Boyer',
    author_email='mboyer@sdf.org',
    license='BSD',
    classifiers=[
        'Environment :: Console',
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: POSIX',
        'Topic :: Software Development :: Version Control',
        'Topic :: Software Development :: Testing',
        'Programming Language :: Python :: 3',
    ],
    keywords='git blame gix gitoxide',
    packages=['blame_compare'],
    include_package_data=True,
    python_requires='>=3.6',
    extras_require={
        'test': ['mock', 'pytest'],
    },
    entry_points={
        'console_scripts': [
            'git-blame-compare = blame_compare.compare:main'
        ]
    },
)

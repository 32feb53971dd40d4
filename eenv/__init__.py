"""
eenv keeps .env files out of git while keeping their contents in it.

Environment files are any files whose name starts with '.env'. For each
plaintext file eenv maintains:

\b
    * '.env.example', a skeleton with every value removed.
    * '.env.enc', the file encrypted with the project key.
    * a rule in .gitignore so the plaintext is never committed.

The project key lives in 'eenv.config.json', which is ignored by git and
shared out of band. Files can be hidden from eenv with '.eenvignore' files,
which use the same syntax as .gitignore.

Set up a repository, or decrypt a fresh clone:

\b
    $ eenv init

Block commits that include plaintext secrets:

\b
    $ eenv hook install
    $ eenv pre-commit --write
"""

__author__ = 'eenv contributors'
__version__ = '0.3.0'

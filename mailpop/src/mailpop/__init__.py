"""
Module: mailpop.__init__

What:
  Aggregate package exports for the mailpop POP3 client engine and expose the
  primary namespace segments (configuration, POP3 engine, and utilities).

Why:
  Entry points and library callers import these names to build a mailbox from
  configuration without touching private modules.

How:
  Provide an explicit ``__all__`` enumerating the public subpackages.

Interfaces:
  - config: Configuration schema and loader.
  - pop3: Wire codec, authentication, connection manager, session
    synchronisation and the :class:`~mailpop.pop3.Pop3Mailbox` facade.
  - utils: Structured logging helpers.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "pop3",
    "utils",
]

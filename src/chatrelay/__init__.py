"""chatrelay — HTTP relay between API callers and a browser chat worker.

External callers POST a query and block; a browser extension (the worker)
polls the relay for work, drives the chat page, and posts the answer back.
The relay matches that answer to the caller that is still waiting.
"""

__version__ = "0.1.0"

"""Background translation worker and the file queue used to talk to it.

Why files instead of a socket or a broker?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
The front end is a short-lived CLI process and the worker is a single
long-lived process on the same machine, owned by the same user. The only
shared state needed is a directory:

- ``req-<id>.json`` written by the dispatcher, deleted by the worker on read.
- ``res-<id>.json`` written by the worker, deleted by the dispatcher on read.
- ``worker.pid`` written by the worker on start, removed on clean exit.

Deleting a file right after reading it is the acknowledgment; nothing else
is recorded. Crashes between two steps are recovered by timeouts and by
translating locally, never by assuming exactly-once delivery.
"""

"""Collector package for kubegress.

Provides Kubernetes list+watch loops that keep the ObjectCache current and
emit one ChangeNotification per changed object.

Submodules
----------
watcher -- ResourceWatcher: relist on start and on 410 Gone, exponential back-off
           on transport errors, bookmark-aware resourceVersion tracking.
"""

from kubegress.collector.watcher import ResourceWatcher

__all__ = ["ResourceWatcher"]

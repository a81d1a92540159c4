"""
kubestrap.proxy
---------------

A caching reverse proxy for the release artifacts of Kubernetes, etcd and
coredns.

* :mod:`kubestrap.proxy.endpoint` - where artifacts come from
* :mod:`kubestrap.proxy.semaphore` - one download per artifact
* :mod:`kubestrap.proxy.handler` - cache, validate and serve
* :mod:`kubestrap.proxy.server` - the threaded HTTP server
"""

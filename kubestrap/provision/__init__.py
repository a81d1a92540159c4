"""
kubestrap.provision
-------------------

Steps preparing a host to run the control plane. The binaries come from
the artifact proxy, see :mod:`kubestrap.provision.download`.
"""

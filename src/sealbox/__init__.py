"""sealbox: zip containers carrying per-signer manifests and timestamp signatures.

The HTTP service lives in ``sealbox.api.main``; container operations in
``sealbox.containers.service``; the trust service clients in ``sealbox.trust``.
"""

"""
MongoDB client creation for the oplog tailer.
"""

from typing import Any, Dict, Optional
import pymongo

DEFAULT_URI = "mongodb://127.0.0.1/local"
OPLOG_DATABASE = "local"


def create_client(uri: str = DEFAULT_URI, **options: Any) -> pymongo.MongoClient:
    """Create a MongoClient from a URI. Caller is responsible for closing it.

    Looking up ``pymongo.MongoClient`` at call time allows tests to monkeypatch
    it (e.g., with mongomock) and have our code pick it up.
    """
    return pymongo.MongoClient(uri, **options)


def build_client_options(
    replica_set: Optional[str] = None,
    tls: bool = False,
    tls_ca_file: Optional[str] = None,
    tls_cert_file: Optional[str] = None,
    tls_key_file: Optional[str] = None,
    tls_key_password: Optional[str] = None,
) -> Dict[str, Any]:
    """Translate connection settings into MongoClient keyword arguments.

    Any TLS material implies ``tls=True``. The driver reads the client
    certificate and private key from one PEM file, so a separate key file
    takes precedence over the certificate file.
    """
    options: Dict[str, Any] = {}
    if replica_set:
        options["replicaSet"] = replica_set
    if tls_ca_file:
        options["tlsCAFile"] = tls_ca_file
    certificate_key_file = tls_key_file or tls_cert_file
    if certificate_key_file:
        options["tlsCertificateKeyFile"] = certificate_key_file
        if tls_key_password:
            options["tlsCertificateKeyFilePassword"] = tls_key_password
    if tls or any(key.startswith("tls") for key in options):
        options["tls"] = True
    return options

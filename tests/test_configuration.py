import base64

from signalr_client.configuration import (
    BasicAuthentication,
    BearerAuthentication,
    ConnectionConfiguration,
    NoAuthentication,
)


def test_defaults_are_secure_without_port():
    config = ConnectionConfiguration("localhost", "test")
    assert config.web_url() == "https://localhost/test"
    assert config.socket_url() == "wss://localhost/test"
    assert config.authentication.header() is None


def test_unsecure_with_port():
    config = ConnectionConfiguration("localhost", "test")
    config.with_port(5220).unsecure()
    assert config.web_url() == "http://localhost:5220/test"
    assert config.socket_url() == "ws://localhost:5220/test"


def test_secure_after_unsecure():
    config = ConnectionConfiguration("localhost", "test").unsecure().secure()
    assert config.web_url().startswith("https://")
    assert config.socket_url().startswith("wss://")


def test_with_hub_changes_path():
    config = ConnectionConfiguration("localhost", "test").with_hub("myHub")
    assert config.web_url() == "https://localhost/myHub"


def test_methods_return_same_object():
    config = ConnectionConfiguration("localhost", "test")
    assert config.with_port(1) is config
    assert config.authenticate_bearer("token") is config


def test_basic_header_round_trip():
    password = "password"
    config = ConnectionConfiguration("localhost", "test").authenticate_basic("user", password)
    scheme, encoded = config.authentication.header().split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(encoded) == b"user:password"


def test_basic_header_without_password():
    header = BasicAuthentication("user").header()
    assert base64.b64decode(header.split(" ", 1)[1]) == b"user:"


def test_bearer_header():
    assert BearerAuthentication("token").header() == "Bearer token"


def test_no_authentication_header():
    assert NoAuthentication().header() is None


def test_authentication_replaced():
    password = "password"
    config = ConnectionConfiguration("localhost", "test")
    config.authenticate_basic("user", password).authenticate_bearer("token")
    assert config.authentication == BearerAuthentication("token")
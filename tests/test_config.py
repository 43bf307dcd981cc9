import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from klip.config import (
    DEFAULT_CONNECT,
    DEFAULT_LISTEN,
    DEFAULT_TTL,
    Command,
    ServerArgs,
    TomlConfig,
    build_config,
    parse_address,
)
from klip.errors import InvalidFieldError, MissingFieldError

PSK_HEX = "11" * 32
ENCRYPT_SK_HEX = "22" * 32


def _raw_keys():
    signing = Ed25519PrivateKey.generate()
    sk = signing.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    pk = signing.public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    )
    return sk, pk


def _table(**overrides):
    sk, pk = _raw_keys()
    table = {
        "psk": PSK_HEX,
        "encrypt_sk": ENCRYPT_SK_HEX,
        "sign_pk": pk.hex(),
        "sign_sk": sk.hex(),
    }
    table.update(overrides)
    return {k: v for k, v in table.items() if v is not None}


def test_parse_ipv4_address():
    assert parse_address("10.1.2.3:4000", DEFAULT_CONNECT) == ("10.1.2.3", 4000)


def test_parse_ipv6_address():
    assert parse_address("[::1]:9000", DEFAULT_CONNECT) == ("::1", 9000)


@pytest.mark.parametrize(
    "text", ["nonsense", "localhost:80", "1.2.3.4:70000", "1.2.3.4", "1.2.3.4:", "::1:80"]
)
def test_parse_bad_address_falls_back(text):
    assert parse_address(text, DEFAULT_LISTEN) == DEFAULT_LISTEN


def test_connect_and_listen_defaults():
    cfg = TomlConfig({})
    assert cfg.connect() == ("127.0.0.1", 8075)
    assert cfg.listen() == ("0.0.0.0", 8075)


def test_connect_and_listen_from_table():
    cfg = TomlConfig({"connect": "192.0.2.1:1234", "listen": "[::]:5555"})
    assert cfg.connect() == ("192.0.2.1", 1234)
    assert cfg.listen() == ("::", 5555)


def test_non_string_address_uses_default():
    assert TomlConfig({"connect": 5}).connect() == DEFAULT_CONNECT


@pytest.mark.parametrize("field", ["psk", "encrypt_sk", "sign_pk", "sign_sk"])
def test_missing_field(field):
    cfg = TomlConfig(_table(**{field: None}))
    with pytest.raises(MissingFieldError) as info:
        getattr(cfg, field)()
    assert info.value.field == field


@pytest.mark.parametrize("field", ["psk", "encrypt_sk", "sign_pk", "sign_sk"])
@pytest.mark.parametrize("value", ["zz" * 32, "11" * 31, "1" * 63])
def test_invalid_field(field, value):
    cfg = TomlConfig(_table(**{field: value}))
    with pytest.raises(InvalidFieldError) as info:
        getattr(cfg, field)()
    assert info.value.field == field


def test_psk_decodes_bytes():
    assert TomlConfig(_table()).psk() == bytes.fromhex(PSK_HEX)


def test_hex_accepts_uppercase():
    assert TomlConfig(_table(psk="AB" * 32)).psk() == bytes.fromhex("ab" * 32)


def test_explicit_encrypt_sk_id_is_little_endian():
    cfg = TomlConfig(_table(encrypt_sk_id="0100000000000000"))
    assert cfg.encrypt_sk_id() == 1


def test_invalid_encrypt_sk_id():
    with pytest.raises(InvalidFieldError):
        TomlConfig(_table(encrypt_sk_id="01")).encrypt_sk_id()


def test_derived_encrypt_sk_id_depends_on_key():
    first = TomlConfig(_table()).encrypt_sk_id()
    again = TomlConfig(_table()).encrypt_sk_id()
    other = TomlConfig(_table(encrypt_sk="33" * 32)).encrypt_sk_id()
    assert first == again
    assert first != other
    assert 0 <= first < 2**64


def test_derived_encrypt_sk_id_needs_encrypt_sk():
    with pytest.raises(MissingFieldError):
        TomlConfig(_table(encrypt_sk=None)).encrypt_sk_id()


def test_sign_keys_round_trip():
    sk, pk = _raw_keys()
    cfg = TomlConfig(_table(sign_pk=pk.hex(), sign_sk=sk.hex()))
    public = cfg.sign_sk().public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    )
    assert public == pk
    assert cfg.sign_pk().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    ) == pk


@pytest.mark.parametrize("value", [None, 0, -5, "60", True])
def test_ttl_default(value):
    table = {} if value is None else {"ttl": value}
    assert TomlConfig(table).ttl() == DEFAULT_TTL


def test_ttl_from_table():
    assert TomlConfig({"ttl": 60}).ttl() == 60


def test_default_ttl_is_a_week():
    assert TomlConfig({}).ttl() == 604800
    cfg = build_config(TomlConfig(_table()), Command.PASTE)
    assert cfg.ttl == 604800


def test_client_config():
    cfg = build_config(TomlConfig(_table(ttl=120)), Command.PASTE)
    assert cfg.max_clients == 1
    assert cfg.max_len == 1
    assert cfg.timeout == 10
    assert cfg.data_timeout == 3600
    assert cfg.trusted_ip_count == 0
    assert cfg.ttl == 120
    assert cfg.encrypt_sk == bytes.fromhex(ENCRYPT_SK_HEX)
    assert cfg.psk == bytes.fromhex(PSK_HEX)


def test_client_config_needs_signing_key():
    with pytest.raises(MissingFieldError):
        build_config(TomlConfig(_table(sign_sk=None)), Command.COPY)


def test_server_config_ignores_client_secrets():
    args = ServerArgs(max_clients=30, max_len_mb=2, timeout=5, data_timeout=60)
    cfg = build_config(
        TomlConfig(_table(sign_sk=None, encrypt_sk=None)), Command.SERVE, args
    )
    assert cfg.encrypt_sk == bytes(32)
    assert cfg.encrypt_sk_id == 0
    assert cfg.max_clients == 30
    assert cfg.max_len == 2 * 1024 * 1024
    assert cfg.timeout == 5
    assert cfg.data_timeout == 60
    assert cfg.trusted_ip_count == 3


@pytest.mark.parametrize("max_clients", [1, 5, 9, 10])
def test_trusted_ip_count_at_least_one(max_clients):
    cfg = build_config(TomlConfig(_table()), Command.SERVE, ServerArgs(max_clients=max_clients))
    assert cfg.trusted_ip_count == 1


def test_server_needs_psk():
    with pytest.raises(MissingFieldError):
        build_config(TomlConfig(_table(psk=None)), Command.SERVE)


def test_server_args_defaults():
    args = ServerArgs()
    assert (args.max_clients, args.max_len_mb, args.timeout, args.data_timeout) == (
        10,
        0,
        10,
        3600,
    )


def test_server_args_reject_zero_clients():
    with pytest.raises(ValueError):
        ServerArgs(max_clients=0)


def test_describe_hides_secrets():
    cfg = build_config(TomlConfig(_table()), Command.COPY)
    text = cfg.describe(False)
    assert PSK_HEX not in text
    assert ENCRYPT_SK_HEX not in text
    assert "127.0.0.1:8075" in text
    assert repr(cfg) == text


def test_describe_shows_secrets():
    cfg = build_config(TomlConfig(_table(encrypt_sk_id="0100000000000000")), Command.COPY)
    text = cfg.describe(True)
    assert f"psk={PSK_HEX}" in text
    assert f"encrypt_sk={ENCRYPT_SK_HEX}" in text
    assert "encrypt_sk_id=0100000000000000" in text


def test_describe_brackets_ipv6():
    cfg = build_config(TomlConfig(_table(listen="[::1]:8000")), Command.COPY)
    assert "listen=[::1]:8000" in cfg.describe(False)
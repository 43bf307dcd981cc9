# klip

klip shares arbitrary content between hosts over the network. A client reads
content from standard input, encrypts it with XChaCha20, signs it with
Ed25519 and stores it on a server. Any other client holding the same keys can
fetch it, check the signature and decrypt it to standard output. Every
connection starts with a handshake authenticated by a pre-shared key
(keyed BLAKE2b).

## Installation

```
pip install .
```

This installs the `klip` command. Python 3.11 or later is required.

## Quick start

1. Generate keys:

   ```
   klip genkeys
   ```

   The command prints sample client, server and hybrid configurations. Copy
   the relevant lines into `~/.klip.toml`, or into another file that you then
   name with `-c`/`--config`. With `-p`/`--password` the keys are derived
   from a password (read without echo from the terminal, or from standard
   input when there is none) through scrypt, so the same password always
   gives the same keys.

2. Start a server on a reachable host:

   ```
   klip serve
   ```

   Options:

   - `--max-clients N`: simultaneous client connections (default 10). A tenth
     of this (at least one) is kept for peers that recently authenticated.
   - `--max-len-mb N`: largest content accepted, in MiB (default 0, meaning
     unlimited).
   - `-t`, `--timeout N`: connection timeout in seconds (default 10).
   - `-d`, `--data-timeout N`: data transmission timeout in seconds
     (default 3600).

   On platforms with `SIGINFO` (the BSDs and macOS), sending it to the server
   prints whether the clipboard holds anything and when it was last filled.

3. Copy from one host:

   ```
   echo "hello" | klip copy
   ```

4. Paste on another:

   ```
   klip paste
   ```

   `klip move` pastes and clears the stored content in one step.

The short aliases `c`, `p` and `m` stand for `copy`, `paste` and `move`.
The configuration file option comes before the command, for example
`klip -c ./klip.toml paste`.

`klip --version` prints the version. `klip version` prints the same text but,
like the other commands, first reads the configuration file.

## Configuration

The configuration file is TOML. Recognised keys:

| key             | used by | meaning                                                       |
|-----------------|---------|---------------------------------------------------------------|
| `connect`       | client  | server address as `ip:port` or `[ipv6]:port` (default `127.0.0.1:8075`) |
| `listen`        | server  | listen address in the same form (default `0.0.0.0:8075`)      |
| `psk`           | both    | 32-byte pre-shared key, hex                                   |
| `sign_pk`       | both    | Ed25519 public key, hex                                       |
| `sign_sk`       | client  | Ed25519 secret key, hex                                       |
| `encrypt_sk`    | client  | 32-byte XChaCha20 key, hex                                    |
| `encrypt_sk_id` | client  | optional 8-byte key identifier, hex; derived from `encrypt_sk` when absent |
| `ttl`           | client  | maximum age of pasted content in seconds (default one week)  |

Addresses must be IP addresses; host names, and any address that does not
parse, fall back to the default. A missing required key or a malformed hex
value is reported as an error naming the field.

## Using it from Python

- `klip.cli.main(argv=None)` runs the command line and returns the exit status.
- `klip.config.TomlConfig` and `klip.config.build_config` turn a parsed TOML
  table into a `Config`.
- `klip.client.run` and `klip.server.serve` run the client and the server on
  asyncio.
- `klip.xchacha20.XChaCha20` applies the XChaCha20 keystream to data in
  pieces of any size; `klip.xchacha20.hchacha20` derives a subkey.
- `klip.authentication` holds the handshake hashes `auth0` to `auth3store`.
- `klip.keygen.generate_keys` prints a fresh set of keys.

## Limits

- The server keeps a single clipboard, in memory only; it is lost when the
  server stops.
- klip does not touch the desktop clipboard. It copies standard input and
  pastes to standard output.

## Running the tests

```
pip install .[test]
pytest
```
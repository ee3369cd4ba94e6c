# enclaver

Building blocks for packaging and running applications inside Nitro Enclaves.

## What is in the package

- **Manifests** (`enclaver.manifest`) — `parse_manifest(buf)` parses YAML into a
  `Manifest` dataclass (`Sources`, `Ingress`, `ServerTls`, `Egress`, `Defaults`,
  `KmsProxy`, `Api`). Unknown or missing fields, wrong types and out-of-range ports
  raise `ManifestError`. `load_manifest(path)` and `load_manifest_raw(path)` read a
  file, or stdin when the path is `-`; the raw variant also returns the bytes read.
- **Constants** (`enclaver.constants`) — file names (`enclaver.yaml`,
  `application.eif`), in-enclave paths and the internal port numbers.
- **Egress policy** (`enclaver.policy`) — `EgressPolicy(manifest.egress)` decides
  whether a host may be reached: it must match the allow list and not the deny list.
  Patterns that parse as IP networks go to an `IpFilter` (`10.0.0.0/8`, `::/0`, a
  bare address); the rest go to a `DomainFilter`, where `*` matches exactly one
  label and a leading `**` matches one or more labels. Domain matching ignores ASCII
  case, and bracketed IPv6 hosts such as `[::1]` are accepted.
  `EgressPolicy.allow_all()` allows every host.
- **nitro-cli** (`enclaver.nitro_cli`) — `NitroCLI` runs the `nitro-cli` program
  and decodes its JSON output into `EnclaveInfo`, `EIFInfo` and
  `EnclaveTerminationStatus`. `RunEnclaveArgs` requires at least 1 CPU and 64 MiB of
  memory. Failures raise `NitroCLIError`. `KnownIssue.detect(line)` recognises
  out-of-memory and out-of-disk-space build failures, and
  `KnownIssue.helpful_message()` explains them.
- **Attestation API** (`enclaver.api`, `enclaver.http_util`, `enclaver.nsm`) —
  `ApiHandler` answers `POST /v1/attestation` with an `application/cbor` document
  from an `AttestationProvider`. The JSON body may carry a base64 `nonce`, base64
  `user_data` and a PEM `public_key`; malformed input gets a 400, other paths a 404
  and other methods a 405. `HttpServer.bind(port)` listens on 127.0.0.1 and
  `serve(handler)` runs until cancelled, turning handler exceptions into 500s.
  `StaticAttestationProvider` always returns the same document.
- **Key pairs** (`enclaver.keypair`) — `KeyPair.generate()` makes a 2048-bit RSA
  key; the public key is available as DER or PEM SubjectPublicKeyInfo.
- **Image layers** (`enclaver.images`) — `LayerBuilder` collects `FileBuilder`s
  (from a `LocalFile` or an `ImageFile`) and an entrypoint. `dockerfile(image)`
  renders the Dockerfile; `realize(image, dst)` writes a tarred build context,
  with local files copied under `files/`, to a binary stream.
- **Supervisor helpers** (`enclaver.odyn`)
  - `launcher.run_child(argv, creds)` starts a process in its own process group
    under the given uid/gid and reaps every child until it ends, returning
    `Exited(code)` or `Signaled(signal)`; `start_child` does the same from asyncio.
  - `config.Configuration.load(config_dir)` reads `enclaver.yaml` from the
    directory and loads TLS listeners from `tls/server/<port>/cert.pem` and
    `key.pem`. It gives the egress proxy URI (port 9000 unless the manifest says
    otherwise, and only when an allow list is present), the KMS proxy and API ports,
    and KMS endpoints per region. `set_proxy_env_var(uri)` sets the `http_proxy`
    family of variables.
  - `console.ByteLog` is a 128 KiB log that drops its oldest bytes when full;
    `console.AppStatus` reports `running`, `exited`, `signaled` or `fatal` as JSON
    lines. Both `stream(writer)` to an asyncio writer and push updates as they come.

## Example

```python
from enclaver.manifest import parse_manifest
from enclaver.policy.egress import EgressPolicy

manifest = parse_manifest(b"""
version: v1
name: demo
target: demo-enclave:latest
sources:
  app: demo-app:latest
egress:
  allow:
    - "**.amazonaws.com"
    - "169.254.169.254"
""")

policy = EgressPolicy(manifest.egress)
policy.is_host_allowed("kms.us-east-1.amazonaws.com")  # True
policy.is_host_allowed("169.254.169.254")              # True
policy.is_host_allowed("example.com")                  # False
```

## What the package does not do

- There is no command-line program: no command to build or run enclave images.
- Nothing talks to a Docker daemon. `LayerBuilder` only produces the Dockerfile and
  build context; building, pulling and tagging images is left to the caller.
- There is no attestation provider backed by enclave hardware, only
  `StaticAttestationProvider`; other providers subclass `AttestationProvider`.
- There are no ingress, egress or KMS proxies and no vsock transport. The log and
  status streams write to any asyncio writer you give them.

## Installing

```
pip install .
pip install ".[test]"   # with the test tools
pytest
```
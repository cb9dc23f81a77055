"""Command-line interface for the Beltic signing core.

Example:
    >>> # From terminal:
    >>> # beltic --version
    >>> # beltic keygen --alg EdDSA --out private.pem --pub public.pem
    >>> # beltic sign --key private.pem --payload agent.json --out agent.jwt
    >>> # beltic verify --key public.pem --token agent.jwt
    >>> # beltic http-sign --method GET --url https://api.example.com/x \\
    >>> #     --key private.pem --key-directory https://agent.example.com/.well-known/http-message-signatures-directory
    >>> # beltic directory generate --public-key public.pem --out directory.json
    >>> # beltic schema status
    >>> # beltic credential-id agent.jwt
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from beltic import __version__
from beltic.credentials import (
    ClaimsOptions,
    CredentialKind,
    extract_credential_id,
    parse_credential_kind,
    sign_credential,
    verify_credential,
)
from beltic.crypto.algorithms import SignatureAlgorithm
from beltic.crypto.keys import (
    generate_key,
    load_public_key,
    write_private_key,
    write_public_key,
)
from beltic.errors import BelticError, SchemaFetchError, SchemaValidationError
from beltic.httpsig import (
    HttpRequest,
    generate_key_directory,
    sign_key_directory,
    sign_request,
    write_key_directory,
)
from beltic.observability import configure_logging
from beltic.schemas import SchemaResolver
from beltic.utils.files import atomic_write_text

app = typer.Typer(help="Beltic credential and HTTP message signing CLI.")

directory_app = typer.Typer(help="Web Bot Auth key directories (generate, thumbprint).")
app.add_typer(directory_app, name="directory")

schema_app = typer.Typer(help="Credential schema cache (status, refresh, clear).")
app.add_typer(schema_app, name="schema")


class OutputFormat(str, Enum):
    HEADERS = "headers"
    CURL = "curl"


def _fail(message: str) -> typer.Exit:
    typer.echo(message, err=True)
    return typer.Exit(1)


def _parse_alg(value: str) -> SignatureAlgorithm:
    try:
        return SignatureAlgorithm.parse(value)
    except BelticError as exc:
        raise typer.BadParameter(exc.message) from exc


def _parse_kind(value: Optional[str]) -> Optional[CredentialKind]:
    if value is None:
        return None
    try:
        return parse_credential_kind(value)
    except BelticError as exc:
        raise typer.BadParameter(exc.message) from exc


def _read_json_object(path: Path, what: str) -> dict[str, Any]:
    if not path.exists():
        raise typer.BadParameter(f"{what} file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{what} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{what} must be a JSON object")
    return data


@app.command("keygen")
def keygen(
    alg: Annotated[str, typer.Option("--alg", help="ES256 or EdDSA.")] = "EdDSA",
    out: Annotated[
        Path, typer.Option("--out", "-o", help="Output path for the private key PEM (mode 0600).")
    ] = Path("private.pem"),
    pub: Annotated[
        Path, typer.Option("--pub", help="Output path for the public key PEM.")
    ] = Path("public.pem"),
    force: Annotated[bool, typer.Option("--force", help="Overwrite existing key files.")] = False,
) -> None:
    """Generate a key pair and write it as PKCS#8 / SPKI PEM files."""
    algorithm = _parse_alg(alg)
    for path in (out, pub):
        if path.exists() and path.is_dir():
            raise typer.BadParameter(f"Output path is a directory: {path}")
        if path.exists() and not force:
            raise typer.BadParameter(f"{path} already exists (use --force to overwrite)")
    material = generate_key(algorithm)
    write_private_key(out, material)
    write_public_key(pub, material)
    typer.echo(f"Private key written to {out}")
    typer.echo(f"Public key written to {pub}")
    typer.echo(f"Key ID (JWK thumbprint): {material.thumbprint()}")


@app.command("sign")
def sign(
    key: Annotated[Path, typer.Option("--key", "-k", help="Private key PEM.")],
    payload: Annotated[Path, typer.Option("--payload", help="Credential JSON to sign.")],
    out: Annotated[Path, typer.Option("--out", "-o", help="Output file for the JWS token.")],
    alg: Annotated[str, typer.Option("--alg", help="ES256 or EdDSA.")] = "EdDSA",
    kid: Annotated[
        Optional[str],
        typer.Option("--kid", help="Key ID for the header (default: key thumbprint)."),
    ] = None,
    credential_type: Annotated[
        Optional[str], typer.Option("--type", help="agent or developer (default: detect).")
    ] = None,
    issuer: Annotated[Optional[str], typer.Option("--issuer", help="Override iss.")] = None,
    subject: Annotated[Optional[str], typer.Option("--subject", help="Override sub.")] = None,
    audience: Annotated[
        Optional[list[str]], typer.Option("--audience", help="Intended audience (repeatable).")
    ] = None,
    skip_schema: Annotated[
        bool, typer.Option("--skip-schema", help="Do not validate against the schema.")
    ] = False,
) -> None:
    """Validate a credential, wrap it in JWT claims and sign it."""
    algorithm = _parse_alg(alg)
    kind = _parse_kind(credential_type)
    if not key.exists():
        raise typer.BadParameter(f"Key file not found: {key}")
    credential = _read_json_object(payload, "Payload")
    options = ClaimsOptions(issuer=issuer, subject=subject, audience=audience or [])
    try:
        signed = sign_credential(
            credential,
            key,
            alg=algorithm,
            kind=kind,
            options=options,
            kid=kid,
            skip_validation=skip_schema,
        )
    except SchemaValidationError as exc:
        typer.echo(f"{exc.message}:", err=True)
        for error in exc.errors:
            typer.echo(f"  - {error}", err=True)
        raise typer.Exit(1) from exc
    except BelticError as exc:
        raise _fail(f"Error: {exc.message}") from exc

    if signed.schema_warning:
        typer.echo(f"Warning: {signed.schema_warning}", err=True)
    try:
        atomic_write_text(out, signed.token)
    except OSError as exc:
        raise _fail(f"Error: failed to write token to {out}: {exc}") from exc
    typer.echo(f"Wrote {signed.kind.display_name} JWS to {out}")


@app.command("verify")
def verify(
    key: Annotated[Path, typer.Option("--key", "-k", help="Public key PEM.")],
    token: Annotated[Path, typer.Option("--token", help="File containing the JWS token.")],
    audience: Annotated[
        Optional[list[str]],
        typer.Option("--audience", help="This verifier's identity (repeatable)."),
    ] = None,
    credential_type: Annotated[
        Optional[str], typer.Option("--type", help="Expected type: agent or developer.")
    ] = None,
    skip_schema: Annotated[
        bool, typer.Option("--skip-schema", help="Do not validate the embedded credential.")
    ] = False,
) -> None:
    """Verify a credential token; prints VALID and the payload, or INVALID and exits 1."""
    kind = _parse_kind(credential_type)
    if not token.exists():
        raise typer.BadParameter(f"Token file not found: {token}")
    raw = token.read_text(encoding="utf-8").strip()
    try:
        verified = verify_credential(
            raw,
            key,
            expected_audience=audience or None,
            kind=kind,
            skip_validation=skip_schema,
        )
    except BelticError as exc:
        raise _fail(f"INVALID: {exc.message}") from exc

    if verified.schema_warning:
        typer.echo(f"Warning: {verified.schema_warning}", err=True)
    if not verified.is_valid:
        typer.echo(f"INVALID: {verified.kind.display_name} failed schema validation", err=True)
        for error in verified.errors:
            typer.echo(f"  - {error}", err=True)
        raise typer.Exit(1)
    typer.echo("VALID")
    typer.echo(json.dumps(verified.payload, indent=2))


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, rest = value.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"invalid header format '{value}': use 'Name: Value'")
        headers[name.strip()] = rest.strip()
    return headers


@app.command("http-sign")
def http_sign(
    method: Annotated[str, typer.Option("--method", help="HTTP method (GET, POST, ...).")],
    url: Annotated[str, typer.Option("--url", help="Target URL.")],
    key: Annotated[Path, typer.Option("--key", "-k", help="Ed25519 private key PEM.")],
    key_directory: Annotated[
        str, typer.Option("--key-directory", help="HTTPS URL of your key directory.")
    ],
    header: Annotated[
        Optional[list[str]], typer.Option("--header", "-H", help="Extra header 'Name: Value'.")
    ] = None,
    component: Annotated[
        Optional[list[str]], typer.Option("--component", help="Component to sign (repeatable).")
    ] = None,
    body: Annotated[Optional[str], typer.Option("--body", help="Request body.")] = None,
    body_file: Annotated[
        Optional[Path], typer.Option("--body-file", help="Read the request body from a file.")
    ] = None,
    expires_in: Annotated[
        int, typer.Option("--expires-in", min=1, help="Signature validity in seconds.")
    ] = 60,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", help="headers or curl.")
    ] = OutputFormat.HEADERS,
) -> None:
    """Sign an HTTP request (RFC 9421) for Web Bot Auth."""
    if body is not None and body_file is not None:
        raise typer.BadParameter("use either --body or --body-file, not both")
    if body_file is not None:
        if not body_file.exists():
            raise typer.BadParameter(f"Body file not found: {body_file}")
        body = body_file.read_text(encoding="utf-8")
    request = HttpRequest(
        method=method,
        url=url,
        headers=_parse_headers(header or []),
        body=body,
    )
    try:
        signed = sign_request(
            request,
            key,
            key_directory,
            components=component or None,
            expires_in=expires_in,
        )
    except BelticError as exc:
        raise _fail(f"Error: {exc.message}") from exc

    if output_format is OutputFormat.CURL:
        typer.echo(signed.render_curl())
    else:
        typer.echo(signed.render_headers())
    typer.echo(f"\nKey ID (JWK thumbprint): {signed.keyid}", err=True)
    typer.echo(
        f"Signature valid for {expires_in} seconds (expires at {signed.params.expires})",
        err=True,
    )


@directory_app.command("generate")
def directory_generate(
    public_key: Annotated[
        list[Path], typer.Option("--public-key", help="Ed25519 public key PEM (repeatable).")
    ],
    out: Annotated[Path, typer.Option("--out", "-o", help="Output file for the directory JSON.")],
    credential_url: Annotated[
        Optional[str], typer.Option("--credential-url", help="URL of the agent credential JWT.")
    ] = None,
    agent_metadata: Annotated[
        Optional[str], typer.Option("--agent-metadata", help="Agent metadata as a JSON object.")
    ] = None,
    sign_response: Annotated[
        bool, typer.Option("--sign", help="Also print signed response headers.")
    ] = False,
    private_key: Annotated[
        Optional[Path], typer.Option("--private-key", help="Ed25519 private key for --sign.")
    ] = None,
    authority: Annotated[
        Optional[str], typer.Option("--authority", help="Host serving the directory, for --sign.")
    ] = None,
) -> None:
    """Build a key directory from public keys, optionally with signed response headers."""
    if sign_response and private_key is None:
        raise typer.BadParameter("--private-key is required when using --sign")
    if sign_response and not authority:
        raise typer.BadParameter("--authority is required when using --sign")
    metadata: Optional[dict[str, Any]] = None
    if agent_metadata is not None:
        try:
            parsed = json.loads(agent_metadata)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"--agent-metadata is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise typer.BadParameter("--agent-metadata must be a JSON object")
        metadata = parsed

    try:
        directory = generate_key_directory(public_key, credential_url, metadata)
        write_key_directory(directory, out)
        signed = (
            sign_key_directory(private_key, authority)
            if sign_response and private_key is not None and authority
            else None
        )
    except (BelticError, OSError) as exc:
        message = exc.message if isinstance(exc, BelticError) else str(exc)
        raise _fail(f"Error: {message}") from exc

    typer.echo(f"Wrote key directory to {out}")
    for index, thumb in enumerate(directory.thumbprints(), start=1):
        typer.echo(f"  Key {index}: thumbprint = {thumb}")
    if credential_url:
        typer.echo(f"  Credential URL: {credential_url}")
    if metadata is not None:
        typer.echo(f"  Agent Metadata: {json.dumps(metadata)}")
    if signed is not None:
        typer.echo("\nSigned response headers:")
        typer.echo(signed.render_headers())


@directory_app.command("thumbprint")
def directory_thumbprint(
    public_key: Annotated[Path, typer.Option("--public-key", help="Ed25519 public key PEM.")],
) -> None:
    """Print the JWK thumbprint (RFC 7638) of an Ed25519 public key."""
    try:
        material = load_public_key(public_key, SignatureAlgorithm.EDDSA)
    except BelticError as exc:
        raise _fail(f"Error: {exc.message}") from exc
    typer.echo(material.thumbprint())


def _format_age(seconds: Optional[float]) -> str:
    if seconds is None:
        return "unknown"
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s ago"
    if secs < 3600:
        return f"{secs // 60}m ago"
    if secs < 86400:
        return f"{secs // 3600}h ago"
    return f"{secs // 86400}d ago"


@schema_app.command("status")
def schema_status() -> None:
    """Show where each schema is cached and how old it is."""
    resolver = SchemaResolver()
    typer.echo("Schema Cache Status")
    for kind in CredentialKind:
        status = resolver.status(kind)
        typer.echo(f"  {status.kind}:")
        typer.echo(f"    Path: {status.path}")
        if not status.exists:
            typer.echo("    Status: Not cached")
        elif status.valid:
            typer.echo(f"    Status: Cached ({_format_age(status.age_seconds)})")
        else:
            typer.echo(
                f"    Status: Expired ({_format_age(status.age_seconds)}), "
                "will refresh on next use"
            )


@schema_app.command("refresh")
def schema_refresh(
    agent: Annotated[bool, typer.Option("--agent", help="Refresh only the agent schema.")] = False,
    developer: Annotated[
        bool, typer.Option("--developer", help="Refresh only the developer schema.")
    ] = False,
) -> None:
    """Fetch schemas from the canonical source and rewrite the cache."""
    kinds = [
        kind
        for kind, selected in ((CredentialKind.AGENT, agent), (CredentialKind.DEVELOPER, developer))
        if selected or not (agent or developer)
    ]
    resolver = SchemaResolver()
    failed = False
    for kind in kinds:
        try:
            resolver.refresh(kind)
        except (SchemaFetchError, OSError) as exc:
            reason = exc.reason if isinstance(exc, SchemaFetchError) else str(exc)
            typer.echo(f"Refreshing {kind.value} schema... failed ({reason})", err=True)
            failed = True
            continue
        typer.echo(f"Refreshing {kind.value} schema... done")
    if failed:
        raise typer.Exit(1)


@schema_app.command("clear")
def schema_clear() -> None:
    """Delete the schema cache directory."""
    resolver = SchemaResolver()
    try:
        removed = resolver.clear()
    except OSError as exc:
        raise _fail(f"Clearing schema cache... failed ({exc})") from exc
    typer.echo("Clearing schema cache... done" if removed else "Schema cache is already empty")
    typer.echo("Schemas will be re-fetched on next use.")


@app.command("credential-id")
def credential_id(
    file: Annotated[Path, typer.Argument(help="Credential JSON or JWT file.")],
) -> None:
    """Print the credential ID of a credential document or token."""
    if not file.exists():
        raise typer.BadParameter(f"File not found: {file}")
    try:
        value = extract_credential_id(file.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise _fail(f"Error: {exc}") from exc
    typer.echo(value)


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show Beltic version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
) -> None:
    """Beltic CLI entrypoint."""
    if verbose:
        configure_logging(log_level="INFO", force=True)


def main() -> None:
    """Run the Beltic CLI."""
    app()


if __name__ == "__main__":
    main()

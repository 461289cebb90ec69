"""
ocidist CLI

Implements the CLI verbs with Operations facade integration:
- images: List image versions in a repository
- repos: List repositories in a registry
- inspect: Print information about an image
- copy: Copy an image between registries and OCI layouts
- soci inspect/get/put/bundle: Manage Signed OCI (SOCI) images
"""
from __future__ import annotations

import typer
from typing import Optional

from .cli_context import CLIContext
from .operations import OpsConfig, run_and_exit
from .operations.printers import (
    print_bundle, print_bundle_start, print_bundle_written, print_copy_summary,
    print_inspect, print_lines, print_publish_summary, print_soci_info,
)

app = typer.Typer(name="ocidist", help="Inspect, copy and sign OCI images in registries and OCI layouts",
                  no_args_is_help=True)
soci_app = typer.Typer(help="manage Signed OCI (soci) images", no_args_is_help=True)
app.add_typer(soci_app, name="soci")

TLS_VERIFY = typer.Option(True, "--tls-verify/--no-tls-verify", help="toggle tls verification")
DEBUG = typer.Option(False, "--debug", "-d", help="enable debug output")

@app.command()
def images(
    url: str = typer.Argument(..., help="Repository URL, e.g. ocidist://localhost:5000/myrepo/myimage"),
    tags_only: bool = typer.Option(False, "--tags-only", "-t", help="print image tags only"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Print image versions at URL."""
    
    def _images() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_lines(ops.images(url, tags_only=tags_only))
    
    run_and_exit(_images)

@app.command()
def repos(
    url: str = typer.Argument(..., help="Registry URL, e.g. ocidist://localhost:5000"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Print a list of repositories available at URL."""
    
    def _repos() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_lines(ops.repos(url), indent=" ")
    
    run_and_exit(_repos)

@app.command()
def inspect(
    url: str = typer.Argument(..., help="Image URL, e.g. ocidist://localhost:5000/myrepo/myimage:v2.1"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Print information about an OCI Image at URL."""
    
    def _inspect() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_inspect(ops.inspect(url))
    
    run_and_exit(_inspect)

@app.command()
def copy(
    src: str = typer.Argument(..., help="Source URL (ocidist://, docker:// or oci://)"),
    dest: str = typer.Argument(..., help="Destination URL (ocidist://, docker:// or oci://)"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
) -> None:
    """Copy an OCI image from one URL to another."""
    
    def _copy() -> None:
        context = CLIContext.from_env(tls_verify=tls_verify, debug=debug,
                                      config=OpsConfig(verbose=verbose))
        result = context.operations.copy(src, dest)
        print_copy_summary(result, verbose=verbose)
    
    run_and_exit(_copy)

@soci_app.command("inspect")
def soci_inspect(
    url: str = typer.Argument(..., help="SOCI image URL"),
    ca_file: Optional[str] = typer.Option(None, "--ca-file", "-c", help="CA bundle used to validate the SOCI certificate"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Inspect a Signed OCI (soci) image."""
    
    def _soci_inspect() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_soci_info(ops.soci_inspect(url, ca_file=ca_file))
    
    run_and_exit(_soci_inspect)

@soci_app.command("get")
def soci_get(
    url: str = typer.Argument(..., help="SOCI image URL"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Get a Signed OCI (soci) image as a bundle document."""
    
    def _soci_get() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_bundle(ops.soci_get(url))
    
    run_and_exit(_soci_get)

@soci_app.command("put")
def soci_put(
    bundle_file: str = typer.Argument(..., help="SOCI bundle file"),
    url: str = typer.Argument(..., help="Target registry URL, e.g. ocidist://localhost:5000/product/svc:v1.2"),
    tls_verify: bool = TLS_VERIFY,
    debug: bool = DEBUG,
) -> None:
    """Publish a SOCI bundle to a registry."""
    
    def _soci_put() -> None:
        ops = CLIContext.from_env(tls_verify=tls_verify, debug=debug).operations
        print_publish_summary(url, ops.soci_put(bundle_file, url))
    
    run_and_exit(_soci_put)

@soci_app.command("bundle")
def soci_bundle(
    name: str = typer.Argument(..., help="Bundle name; writes <name>.soci"),
    install_file: str = typer.Option(..., "--install-file", "-i", help="Install JSON document"),
    pub_key: str = typer.Option(..., "--pub-key", "-p", help="PEM certificate of the signing key"),
    sign_key: str = typer.Option(..., "--sign-key", "-s", help="PEM private key used to sign the install document"),
    out_dir: str = typer.Option(".", "--out-dir", "-o", help="Directory for the bundle file"),
    debug: bool = DEBUG,
) -> None:
    """Build a SOCI bundle."""
    
    def _soci_bundle() -> None:
        context = CLIContext.from_env(debug=debug, config=OpsConfig(bundle_dir=out_dir))
        print_bundle_start(name, install_file, pub_key, sign_key)
        path = context.operations.soci_bundle(name, install_file, pub_key, sign_key)
        print_bundle_written(path)
    
    run_and_exit(_soci_bundle)

def main() -> None:
    """Console script entry point."""
    app()

if __name__ == "__main__":
    main()

"""
Command Line Interface for devpod.
"""
import logging
import sys

import click
import yaml
from dotenv import find_dotenv, load_dotenv
from kubernetes import client

from ..BUILDERS.pod_spec_transformer import PodSpecTransformer
from ..MANAGERS.devpod_reconciler import DevpodReconciler
from ..MANAGERS.resource_adapters import parse_target
from ..MODELS.devpod_config import DEFAULT_IMAGE_TRANSPORT, DevpodConfig
from ..REGISTRY.registry_client import RegistryClient
from ..UTILS.kubeconfig import load_api_client, resolve_namespace
from ..UTILS.naming import INIT_MOUNT_PATH
from ..errors import DevpodError


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def build_reconciler(cfg: DevpodConfig, adapter_cls) -> DevpodReconciler:
    """
    Wires the API clients, registry client and transformer for one run.
    """
    api_client = load_api_client(cfg.kubeconfig, cfg.context)
    transformer = PodSpecTransformer(
        RegistryClient(), transport=cfg.image_transport, strict=cfg.strict_images
    )
    return DevpodReconciler(
        adapter_cls.from_api_client(api_client),
        client.CoreV1Api(api_client),
        transformer,
        force=cfg.force,
    )


def dump_objects(objects) -> str:
    serializer = client.ApiClient()
    return yaml.safe_dump_all(
        [serializer.sanitize_for_serialization(obj) for obj in objects], sort_keys=False
    )


@click.command(context_settings={"auto_envvar_prefix": "DEVPOD", "help_option_names": ["-h", "--help"]})
@click.argument('target', metavar='[KIND/]NAME')
@click.option('--namespace', '-n', help='The namespace scope for this request; defaults to the kubeconfig context namespace')
@click.option('--kubeconfig', envvar=['DEVPOD_KUBECONFIG', 'KUBECONFIG'], help='Path to the kubeconfig file; defaults to ~/.kube/config')
@click.option('--context', help='Kubeconfig context to use instead of the current one')
@click.option('--image-transport', default=DEFAULT_IMAGE_TRANSPORT, show_default=True,
              help='Transport prefix used to look up remote container image information')
@click.option('--force', '-f', is_flag=True, help='Delete and re-create an existing devpod that cannot be updated')
@click.option('--strict-images', is_flag=True, help='Fail instead of continuing when an image cannot be inspected')
@click.option('--dry-run', is_flag=True, help='Print the generated objects as YAML without applying them')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(target, namespace, kubeconfig, context, image_transport, force, strict_images, dry_run, verbose):
    """
    Create a sleeping copy of a workload for debugging.

    The copy, named NAME-devpod, keeps the original images but every
    container sleeps instead of starting. The original command line of each
    container is saved as a script you can run by hand after exec'ing in.
    Only deployments are supported.
    """
    configure_logging(verbose)
    cfg = DevpodConfig(
        namespace=namespace,
        kubeconfig=kubeconfig,
        context=context,
        image_transport=image_transport,
        force=force,
        strict_images=strict_images,
        dry_run=dry_run,
        verbose=verbose,
    )

    try:
        adapter_cls, name = parse_target(target)
        cfg.namespace = resolve_namespace(cfg.namespace, cfg.kubeconfig, cfg.context)
        reconciler = build_reconciler(cfg, adapter_cls)

        if cfg.dry_run:
            plan = reconciler.plan(cfg.namespace, name)
            click.echo(dump_objects(plan.objects), nl=False)
            return

        result = reconciler.apply(cfg.namespace, name)
    except DevpodError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    click.echo(f"SUCCESS: {result.action.value.capitalize()} {result.namespace}/{result.name}, to access run:")
    click.echo(f" {result.exec_command}")
    click.echo(f"The original commands are saved in {INIT_MOUNT_PATH}: {', '.join(result.scripts)}")
    if result.inspection_errors:
        click.echo(
            f"{len(result.inspection_errors)} image(s) could not be inspected, "
            "their scripts only contain the command set on the pod",
            err=True,
        )


def main():
    """
    Main entry point for the CLI.
    """
    load_dotenv(find_dotenv(usecwd=True))
    cli()


if __name__ == '__main__':
    main()

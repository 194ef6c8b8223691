"""
Command-line interface for building and filtering interolog networks
"""

import asyncio
import click
import logging
from pathlib import Path
from .graph import InteractomeGraph
from .homology import HomologyIndex
from .mitab import MitabStore
from .services import DEFAULT_PACKET_SIZE, PartnerService
from .support import TaxonMode, TrimCriteria
from .export import ExportFilter, NetworkExporter

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _read_mitab(paths) -> MitabStore:
    store = MitabStore()
    for path in paths:
        store.read(Path(path))
    return store


def _load_graph(graph_path, mitab_paths=()) -> InteractomeGraph:
    mitab = _read_mitab(mitab_paths) if mitab_paths else None
    interactome = InteractomeGraph.load(Path(graph_path), mitab)
    if mitab_paths:
        interactome.link_mitab_records()
    return interactome


@click.group()
@click.option('--output-dir', default='outputs', help='Directory for exported files')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, output_dir, verbose):
    """InteroNet interolog network builder"""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj['output_dir'] = Path(output_dir)


@cli.command()
@click.option('--homology', required=True, type=click.Path(exists=True), help='Homology index JSON file')
@click.option('--mitab', multiple=True, type=click.Path(exists=True), help='MITAB file (repeatable)')
@click.option('--partners-url', help='Partner-lookup service URL (builds edges from the service)')
@click.option('--packet-size', default=DEFAULT_PACKET_SIZE, show_default=True, help='Ids per partner request')
@click.option('--output', '-o', default='interactome.json', help='Serialized graph path')
@click.option('--light', is_flag=True, help='Omit the homology index from the saved graph')
def build(homology, mitab, partners_url, packet_size, output, light):
    """Build the interolog network"""
    if not mitab and not partners_url:
        click.echo("Either --mitab or --partners-url is required")
        return

    try:
        index = HomologyIndex.from_file(Path(homology))
        interactome = InteractomeGraph(index, _read_mitab(mitab))

        if partners_url:
            service = PartnerService(partners_url, packet_size=packet_size)
            asyncio.run(interactome.build_edges_from_partners(service))
            interactome.trim_edges(TrimCriteria.deduplicate())
        else:
            interactome.build_edges()

        if mitab:
            interactome.link_mitab_records()

        interactome.construct_graph(True)
        interactome.save(Path(output), with_homology=not light)
    except Exception as e:
        click.echo(f"❌ Failed to build network: {e}")
        return

    click.echo(f"✅ Built {interactome.edge_count:,} edges over {interactome.node_count:,} proteins")
    click.echo(f"Saved to {output}")


@cli.command()
@click.argument('graph', type=click.Path(exists=True))
@click.option('--similarity', default=0.0, show_default=True, help='Minimum similarity (%)')
@click.option('--identity', default=0.0, show_default=True, help='Minimum identity (%)')
@click.option('--coverage', default=0.0, show_default=True, help='Minimum coverage (%)')
@click.option('--e-value', default=1.0, show_default=True, help='Maximum e-value')
@click.option('--method', 'methods', multiple=True, help='Required detection method (repeatable)')
@click.option('--taxon', 'taxa', multiple=True, help='Required taxon id (repeatable)')
@click.option('--taxon-mode', type=click.Choice([m.value for m in TaxonMode]), default='all', show_default=True)
@click.option('--mitab', multiple=True, type=click.Path(exists=True), help='MITAB evidence to link before trimming')
@click.option('--persist', is_flag=True, help='Delete failing supports instead of hiding them')
@click.option('--destroy-identical', is_flag=True, help='Drop duplicated supports')
@click.option('--log-id', help='Print the trim reasons of one protein')
@click.option('--output', '-o', help='Output path (defaults to GRAPH)')
def trim(graph, similarity, identity, coverage, e_value, methods, taxa, taxon_mode, mitab,
         persist, destroy_identical, log_id, output):
    """Trim edges that do not meet the thresholds"""
    if (methods or taxa) and not mitab:
        click.echo("Detection method and taxon filters need --mitab evidence")
        return

    interactome = _load_graph(graph, mitab)
    criteria = TrimCriteria(
        min_similarity=similarity,
        min_identity=identity,
        min_coverage=coverage,
        max_e_value=e_value,
        detection_methods=methods,
        taxa=taxa,
        taxon_mode=TaxonMode(taxon_mode),
        destroy_identical=destroy_identical,
        persist=persist,
    )

    n_del, n_tot, logged = interactome.trim_edges(criteria, logged_id=log_id)
    interactome.construct_graph(True)
    interactome.save(Path(output or graph))

    click.echo(f"Trimmed {n_del:,} of {n_tot:,} edges")
    for entry in logged:
        click.echo(f"  - {entry['x']} ~ {entry['y']}")
        for reasons in entry['logged']:
            failed = [str(v) for v in reasons.values() if v]
            click.echo(f"      {', '.join(failed) or 'partner failed'}")


@cli.command()
@click.argument('graph', type=click.Path(exists=True))
@click.option('--seed', 'seeds', multiple=True, required=True, help='Seed protein (repeatable)')
@click.option('--distance', default=5, show_default=True, help='Maximum distance, -1 for whole components')
@click.option('--output', '-o', help='Output path (defaults to GRAPH)')
def prune(graph, seeds, distance, output):
    """Keep the neighbourhood of seed proteins"""
    interactome = _load_graph(graph)
    view = interactome.prune(distance, *seeds)
    interactome.save(Path(output or graph))

    click.echo(f"Pruned graph: {view.number_of_nodes():,} nodes, {view.number_of_edges():,} edges")


@cli.command()
@click.argument('graph', type=click.Path(exists=True))
def status(graph):
    """Show graph statistics"""
    interactome = _load_graph(graph)

    click.echo("=== InteroNet Graph Status ===")
    click.echo(f"Stored edges: {len(interactome):,}")
    click.echo(f"Visible edges: {interactome.edge_count:,}")
    click.echo(f"Nodes in view: {interactome.node_count:,}")
    click.echo(f"Homology index: {interactome.homology_length:,} proteins")
    click.echo(f"Taxid: {interactome.taxid or '-'}")

    if interactome.last_trim:
        click.echo("\nLast trim:")
        for key, value in interactome.last_trim.items():
            click.echo(f"  - {key}: {value}")


@cli.command()
@click.argument('graph', type=click.Path(exists=True))
@click.option('--format', 'formats', multiple=True, type=click.Choice(['json', 'graphml', 'csv']),
              help='Export format (repeatable, default all)')
@click.option('--prefix', default='interactome', show_default=True, help='Output file prefix')
@click.option('--min-depth', type=int, help='Minimum number of supports per edge')
@click.pass_context
def export(ctx, graph, formats, prefix, min_depth):
    """Export the visible network"""
    interactome = _load_graph(graph)

    export_filter = ExportFilter()
    export_filter.min_depth = min_depth

    exporter = NetworkExporter(ctx.obj['output_dir'])
    files = exporter.export_network(interactome, export_filter,
                                    format_types=list(formats) or ['json', 'graphml', 'csv'],
                                    filename_prefix=prefix)

    click.echo(f"✅ Exported {len(files)} files:")
    for name, path in files.items():
        click.echo(f"  - {name}: {path}")


if __name__ == '__main__':
    cli()

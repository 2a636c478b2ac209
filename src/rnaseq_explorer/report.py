"""Run the exploration workflow and render it as a self-contained HTML report."""

import html
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import plotly.graph_objects as go
from plotly.offline import get_plotlyjs

from rnaseq_explorer.clustering import (
    ClusteringError,
    assign_clusters,
    cluster_genes,
    compare_linkage_methods
)
from rnaseq_explorer.config import Config, PlotConfig, get_config
from rnaseq_explorer.data_loader import ExpressionDataset, load_dataset
from rnaseq_explorer.pca import run_pca, top_loading_genes
from rnaseq_explorer.tidy import (
    annotate_samples,
    candidate_genes,
    expression_matrix,
    gene_mean_variance,
    summarise_trends,
    to_long
)
from rnaseq_explorer.visualizations import (
    create_cluster_heatmap,
    create_cluster_trend_plot,
    create_count_distribution_plot,
    create_dendrogram,
    create_gene_trend_plot,
    create_loadings_plot,
    create_ma_plot,
    create_mean_variance_plot,
    create_pca_plot,
    create_scree_plot,
    create_volcano_plot
)


logger = logging.getLogger(__name__)

REPORT_STYLE = """
body { font-family: -apple-system, 'Segoe UI', Helvetica, Arial, sans-serif; margin: 2em auto; max-width: 1100px; color: #2C3E50; }
h1 { border-bottom: 2px solid #3498DB; padding-bottom: 0.3em; }
h2 { margin-top: 2em; color: #2980B9; }
table.dataframe { border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }
table.dataframe th, table.dataframe td { border: 1px solid #BDC3C7; padding: 4px 8px; text-align: right; }
table.dataframe th { background: #ECF0F1; }
p.meta { color: #7F8C8D; font-size: 0.9em; }
"""


def _figure(fig: go.Figure, plots: PlotConfig, resize: bool = True) -> str:
    # Faceted figures keep the height they computed from their panel count
    fig.update_layout(template=plots.template, width=plots.width)
    if resize:
        fig.update_layout(height=plots.height)
    return fig.to_html(full_html=False, include_plotlyjs=False)


def _table(df: pd.DataFrame, index: bool = True) -> str:
    return df.to_html(index=index, float_format=lambda v: f"{v:.3g}", border=0)


def _section(title: str, *parts: str) -> str:
    body = "\n".join(parts)
    return f'<section>\n<h2>{html.escape(title)}</h2>\n{body}\n</section>'


def _paragraph(text: str) -> str:
    return f"<p>{html.escape(text)}</p>"


def build_report(dataset: ExpressionDataset, config: Optional[Config] = None) -> str:
    """
    Run every analysis step and render the results as HTML.

    Args:
        dataset: Loaded and validated input tables
        config: Analysis configuration (global config if None)

    Returns:
        HTML document as a string
    """
    config = config or get_config()
    analysis = config.analysis
    plots = config.plots
    sections: List[str] = []

    # Import and reshape
    raw_long = annotate_samples(to_long(dataset.raw_counts), dataset.sample_info)
    trans_long = annotate_samples(to_long(dataset.transformed_counts), dataset.sample_info)
    logger.info(f"Long tables: {len(raw_long)} raw and {len(trans_long)} transformed rows")

    design = pd.crosstab(dataset.sample_info['strain'], dataset.sample_info['minute'])
    sections.append(_section(
        "Data overview",
        _paragraph(
            f"{dataset.raw_counts.shape[0]} genes measured in {dataset.raw_counts.shape[1]} samples; "
            f"{dataset.test_results['comparison'].nunique()} comparisons tested."
        ),
        _paragraph("Samples per strain (rows) and time point in minutes (columns):"),
        _table(design)
    ))

    # Count distributions
    library_sizes = pd.DataFrame({
        'raw library size': dataset.raw_counts.sum(axis=0),
        'raw median count': dataset.raw_counts.median(axis=0),
        'transformed median': dataset.transformed_counts.median(axis=0)
    })
    sections.append(_section(
        "Count distributions",
        _paragraph("Per-sample summary across all samples:"),
        _table(library_sizes.describe().drop(index='count')),
        _figure(create_count_distribution_plot(
            raw_long, log_transform=True, color='strain', title="Raw counts (log10 + 1)"
        ), plots),
        _figure(create_count_distribution_plot(
            trans_long, color='strain', title="Transformed counts"
        ), plots),
        _figure(create_mean_variance_plot(
            gene_mean_variance(dataset.raw_counts), log_scale=True, title="Raw counts: mean vs variance"
        ), plots),
        _figure(create_mean_variance_plot(
            gene_mean_variance(dataset.transformed_counts), log_scale=False,
            title="Transformed counts: mean vs variance"
        ), plots)
    ))

    # PCA
    pca_result = run_pca(
        dataset.transformed_counts,
        sample_info=dataset.sample_info,
        n_components=analysis.n_components
    )
    pcs = ("PC1", "PC2") if len(pca_result.pcs) > 1 else ("PC1",)
    top_loadings = top_loading_genes(pca_result, pcs=pcs, n=analysis.top_n_loadings)
    pca_parts = [
        _figure(create_scree_plot(pca_result.eigenvalues), plots),
        _table(pca_result.eigenvalues.head(10), index=False),
    ]
    if len(pcs) == 2:
        pca_parts.append(_figure(create_pca_plot(pca_result.scores, pca_result.eigenvalues), plots))
        pca_parts.append(_figure(create_loadings_plot(top_loadings), plots))
    sections.append(_section("Principal component analysis", *pca_parts))

    # Differential expression
    results = dataset.test_results
    significant = (
        results.assign(significant=results['padj'] < analysis.padj_threshold)
        .groupby('comparison')['significant']
        .sum()
        .astype(int)
        .rename(f"genes with padj < {analysis.padj_threshold}")
        .to_frame()
    )
    significance_colors = {
        'significant': plots.significant_color,
        'not significant': plots.not_significant_color
    }
    sections.append(_section(
        "Differential expression",
        _table(significant),
        _figure(create_volcano_plot(
            results, padj_threshold=analysis.padj_threshold, colors=significance_colors
        ), plots, resize=False),
        _figure(create_ma_plot(
            results, padj_threshold=analysis.padj_threshold, colors=significance_colors
        ), plots, resize=False)
    ))

    # Clustering of candidate genes
    candidates = candidate_genes(
        results,
        padj_threshold=analysis.padj_threshold,
        lfc_threshold=analysis.lfc_threshold
    )
    candidates = [g for g in candidates if g in dataset.transformed_counts.index]

    if analysis.cut_height is not None:
        cut = {'height': analysis.cut_height}
        needed = 2
    else:
        cut = {'n_clusters': analysis.n_clusters}
        needed = max(2, analysis.n_clusters)

    clustering = None
    skipped = f"Too few candidate genes ({len(candidates)}) to cluster."
    if len(candidates) >= needed:
        matrix = expression_matrix(dataset.transformed_counts, candidates)
        try:
            clustering = cluster_genes(
                matrix,
                method=analysis.linkage_method,
                metric=analysis.distance_metric,
                **cut
            )
        except ClusteringError as e:
            logger.warning(f"Clustering of {len(candidates)} candidate genes failed: {e}")
            skipped = f"The {len(candidates)} candidate genes could not be clustered: {e}"
    else:
        logger.warning(f"Only {len(candidates)} candidate genes; skipping clustering")

    if clustering is not None:
        trends = summarise_trends(trans_long, genes=clustering.labels.index)
        clustered_trends = assign_clusters(trends, clustering)

        cluster_parts = [
            _paragraph(
                f"{len(candidates)} candidate genes (padj < {analysis.padj_threshold} in at least one "
                f"comparison) clustered with {clustering.metric} distance and "
                f"{clustering.method} linkage into {clustering.n_clusters} clusters."
            ),
            _table(clustering.cluster_sizes().to_frame()),
            _figure(create_dendrogram(clustering, cut_height=clustering.cut_height()), plots),
            _figure(create_cluster_heatmap(clustering), plots, resize=False),
            _figure(create_cluster_trend_plot(
                clustered_trends, strain_colors=plots.strain_colors
            ), plots, resize=False),
        ]

        methods = [m for m in analysis.compare_methods if m != clustering.method]
        if methods and clustering.metric == "euclidean":
            try:
                comparison = compare_linkage_methods(
                    matrix,
                    methods=[clustering.method] + methods,
                    n_clusters=clustering.n_clusters
                )
            except ClusteringError as e:
                logger.warning(f"Linkage method comparison failed: {e}")
            else:
                cluster_parts.append(_paragraph("Cluster sizes obtained with other linkage methods:"))
                cluster_parts.append(_table(comparison))

        sections.append(_section("Clustering of genes by expression trend", *cluster_parts))
    else:
        sections.append(_section("Clustering of genes by expression trend", _paragraph(skipped)))

    # Genes of interest
    top_genes = (
        results.dropna(subset=['padj'])
        .sort_values('padj')['gene']
        .drop_duplicates()
        .head(6)
        .tolist()
    )
    if top_genes:
        top_results = results[results['gene'].isin(top_genes)]
        top_table = top_results.pivot_table(
            index='gene', columns='comparison', values=['log2FoldChange', 'padj']
        ).reindex(top_genes)
        sections.append(_section(
            "Top genes",
            _paragraph("Log2 fold change and adjusted p-value per comparison for the genes with the "
                       "smallest adjusted p-values:"),
            _table(top_table),
            _figure(create_gene_trend_plot(
                trans_long, top_genes, strain_colors=plots.strain_colors
            ), plots, resize=False)
        ))

    title = html.escape(config.report_title)
    generated = datetime.now().strftime("%Y-%m-%d %H:%M")
    body = "\n".join(sections)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>{REPORT_STYLE}</style>
<script type="text/javascript">{get_plotlyjs()}</script>
</head>
<body>
<h1>{title}</h1>
<p class="meta">Generated {generated}</p>
{body}
</body>
</html>
"""


def write_report(report: str, path: Union[str, Path]) -> Path:
    """Write a rendered report, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report, encoding='utf-8')
    logger.info(f"Report written to {path}")
    return path


def run_analysis(config: Optional[Config] = None) -> Path:
    """
    Load the configured inputs, build the report and write it to disk.

    Returns:
        Path of the written report
    """
    config = config or get_config()
    dataset = load_dataset(config.paths)
    report = build_report(dataset, config)
    return write_report(report, config.paths.report)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    output = run_analysis()
    print(f"Report: {output}")

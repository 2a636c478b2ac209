"""Visualization functions for RNA-seq exploration."""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.figure_factory as ff
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from rnaseq_explorer.clustering import GeneClustering


SIGNIFICANCE_COLORS = {
    'significant': '#E74C3C',     # Red
    'not significant': '#95A5A6'  # Gray
}


def _significance(test_results: pd.DataFrame, padj_threshold: float) -> pd.Series:
    # NA padj (independent filtering) counts as not significant
    significant = test_results['padj'] < padj_threshold
    return significant.map({True: 'significant', False: 'not significant'})


def _sorted_comparisons(values: pd.Series) -> List:
    unique = values.drop_duplicates().tolist()
    try:
        return sorted(unique, key=float)
    except (TypeError, ValueError):
        return unique


def create_count_distribution_plot(
    long: pd.DataFrame,
    value: str = 'cts',
    log_transform: bool = False,
    color: Optional[str] = None,
    title: str = "Expression Distribution per Sample"
) -> go.Figure:
    """
    Create per-sample boxplots of expression values.

    Args:
        long: Long-format table with sample and value columns
        value: Column holding expression values
        log_transform: Plot log10(value + 1), useful for raw counts
        color: Optional column for colouring samples (e.g. strain)
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = long.copy()
    y_label = value
    if log_transform:
        plot_data[value] = np.log10(plot_data[value] + 1)
        y_label = f"log10({value} + 1)"

    fig = px.box(
        plot_data,
        x='sample',
        y=value,
        color=color,
        points=False,
        title=title,
        labels={value: y_label}
    )

    fig.update_layout(
        template='plotly_white',
        width=1000,
        height=500,
        xaxis=dict(tickangle=-45, tickfont=dict(size=8))
    )

    return fig


def create_mean_variance_plot(
    mean_var: pd.DataFrame,
    log_scale: bool = True,
    title: str = "Mean-Variance Relationship"
) -> go.Figure:
    """
    Scatter of per-gene variance against mean expression.

    Raw counts show variance increasing with the mean; transformed counts
    should not.

    Args:
        mean_var: Table with gene, mean and variance columns
        log_scale: Use log axes (genes with zero mean or variance are dropped)
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = mean_var
    if log_scale:
        plot_data = mean_var[(mean_var['mean'] > 0) & (mean_var['variance'] > 0)]

    fig = go.Figure(go.Scattergl(
        x=plot_data['mean'],
        y=plot_data['variance'],
        mode='markers',
        marker=dict(color='#34495E', size=4, opacity=0.3),
        text=plot_data['gene'],
        hovertemplate='<b>%{text}</b><br>Mean: %{x:.2f}<br>Variance: %{y:.2f}<extra></extra>'
    ))

    if log_scale:
        # Poisson expectation: variance equals mean
        lo = plot_data['mean'].min()
        hi = plot_data['mean'].max()
        fig.add_trace(go.Scatter(
            x=[lo, hi],
            y=[lo, hi],
            mode='lines',
            name='variance = mean',
            line=dict(color='#E74C3C', dash='dash')
        ))

    fig.update_layout(
        title=title,
        xaxis_title="Mean",
        yaxis_title="Variance",
        xaxis_type='log' if log_scale else 'linear',
        yaxis_type='log' if log_scale else 'linear',
        template='plotly_white',
        width=700,
        height=550,
        showlegend=False
    )

    return fig


def create_scree_plot(
    eigenvalues: pd.DataFrame,
    title: str = "Variance Explained by Principal Components"
) -> go.Figure:
    """
    Create scree plot of variance explained per component.

    Args:
        eigenvalues: Table with PC, pct and pct_cum columns
        title: Plot title

    Returns:
        Plotly Figure object
    """
    fig = go.Figure()

    fig.add_trace(go.Bar(
        x=eigenvalues['PC'],
        y=eigenvalues['pct'],
        name='Variance explained',
        marker_color='#3498DB',
        hovertemplate='%{x}: %{y:.1f}%<extra></extra>'
    ))

    fig.add_trace(go.Scatter(
        x=eigenvalues['PC'],
        y=eigenvalues['pct_cum'],
        name='Cumulative',
        mode='lines+markers',
        line=dict(color='#2C3E50'),
        hovertemplate='%{x}: %{y:.1f}% cumulative<extra></extra>'
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Principal component",
        yaxis_title="Variance explained (%)",
        yaxis=dict(range=[0, 105]),
        template='plotly_white',
        width=900,
        height=500
    )

    return fig


def create_pca_plot(
    scores: pd.DataFrame,
    eigenvalues: pd.DataFrame,
    x: str = 'PC1',
    y: str = 'PC2',
    color: Optional[str] = 'minute',
    symbol: Optional[str] = 'strain',
    title: str = "PCA Plot"
) -> go.Figure:
    """
    Create PCA plot of samples.

    Args:
        scores: PC scores with sample information columns
        eigenvalues: Variance explained table (used for axis labels)
        x: Component on the x axis
        y: Component on the y axis
        color: Column for colouring samples (treated as categorical)
        symbol: Column for marker symbols
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = scores.copy()
    if color is not None and color not in plot_data.columns:
        color = None
    if symbol is not None and symbol not in plot_data.columns:
        symbol = None

    category_orders = {}
    if color is not None:
        order = sorted(plot_data[color].dropna().unique())
        plot_data[color] = plot_data[color].astype(str)
        category_orders[color] = [str(v) for v in order]

    pct = eigenvalues.set_index('PC')['pct']

    fig = px.scatter(
        plot_data,
        x=x,
        y=y,
        color=color,
        symbol=symbol,
        hover_name='sample',
        category_orders=category_orders,
        title=title,
        labels={
            x: f'{x} ({pct[x]:.1f}%)',
            y: f'{y} ({pct[y]:.1f}%)'
        }
    )

    fig.update_traces(marker=dict(size=11, line=dict(width=1, color='white')))

    fig.update_layout(
        template='plotly_white',
        width=800,
        height=600,
        showlegend=True
    )

    return fig


def create_loadings_plot(
    top_loadings: pd.DataFrame,
    x: str = 'PC1',
    y: str = 'PC2',
    title: str = "Top Gene Loadings"
) -> go.Figure:
    """
    Draw the loadings of selected genes as arrows from the origin.

    Args:
        top_loadings: Long table with gene, PC and loading columns
        x: Component on the x axis
        y: Component on the y axis
        title: Plot title

    Returns:
        Plotly Figure object
    """
    wide = top_loadings.pivot(index='gene', columns='PC', values='loading').reset_index()

    fig = go.Figure(go.Scatter(
        x=wide[x],
        y=wide[y],
        mode='markers+text',
        text=wide['gene'],
        textposition='top center',
        textfont=dict(size=9),
        marker=dict(size=4, color='#2C3E50'),
        hovertemplate='<b>%{text}</b><br>' + x + ': %{x:.3f}<br>' + y + ': %{y:.3f}<extra></extra>'
    ))

    for _, gene in wide.iterrows():
        fig.add_annotation(
            x=gene[x],
            y=gene[y],
            ax=0,
            ay=0,
            xref='x',
            yref='y',
            axref='x',
            ayref='y',
            showarrow=True,
            arrowhead=2,
            arrowsize=1,
            arrowwidth=1,
            arrowcolor='#E74C3C',
            text=''
        )

    fig.update_layout(
        title=title,
        xaxis_title=f"{x} loading",
        yaxis_title=f"{y} loading",
        template='plotly_white',
        width=750,
        height=650,
        showlegend=False
    )

    return fig


def create_volcano_plot(
    test_results: pd.DataFrame,
    padj_threshold: float = 0.01,
    facet_wrap: int = 3,
    colors: Optional[Dict[str, str]] = None,
    title: str = "Volcano Plot"
) -> go.Figure:
    """
    Create volcano plots faceted by comparison.

    Args:
        test_results: Test results with log2FoldChange, pvalue, padj and comparison
        padj_threshold: Adjusted p-value cutoff for colouring
        facet_wrap: Number of facet columns
        colors: Colours for the significant and not significant points
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = test_results.dropna(subset=['pvalue', 'log2FoldChange']).copy()

    plot_data['-log10pvalue'] = -np.log10(plot_data['pvalue'])

    # Replace infinite values (p-values of exactly 0)
    max_log10p = plot_data['-log10pvalue'].replace([np.inf, -np.inf], np.nan).max()
    plot_data['-log10pvalue'] = plot_data['-log10pvalue'].replace([np.inf], max_log10p * 1.1)

    plot_data['significance'] = _significance(plot_data, padj_threshold)

    comparisons = _sorted_comparisons(plot_data['comparison'])
    n_facets = len(comparisons)

    fig = px.scatter(
        plot_data,
        x='log2FoldChange',
        y='-log10pvalue',
        color='significance',
        color_discrete_map={**SIGNIFICANCE_COLORS, **(colors or {})},
        facet_col='comparison',
        facet_col_wrap=facet_wrap,
        category_orders={
            'comparison': comparisons,
            'significance': list(SIGNIFICANCE_COLORS)
        },
        hover_name='gene',
        hover_data={'padj': ':.2e', 'baseMean': ':.0f'},
        render_mode='webgl',
        title=title,
        labels={
            'log2FoldChange': 'log<sub>2</sub> Fold Change',
            '-log10pvalue': '-log<sub>10</sub> (p-value)',
            'significance': f'padj < {padj_threshold}'
        }
    )

    fig.update_traces(marker=dict(size=4, opacity=0.6))

    n_rows = max(1, int(np.ceil(n_facets / facet_wrap)))
    fig.update_layout(
        template='plotly_white',
        width=1000,
        height=max(400, 320 * n_rows)
    )

    return fig


def create_ma_plot(
    test_results: pd.DataFrame,
    padj_threshold: float = 0.01,
    facet_wrap: int = 3,
    colors: Optional[Dict[str, str]] = None,
    title: str = "MA Plot"
) -> go.Figure:
    """
    Create MA plots (mean expression vs log2 fold change) faceted by comparison.

    Args:
        test_results: Test results with baseMean, log2FoldChange, padj and comparison
        padj_threshold: Adjusted p-value cutoff for colouring
        facet_wrap: Number of facet columns
        colors: Colours for the significant and not significant points
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = test_results.dropna(subset=['baseMean', 'log2FoldChange']).copy()
    plot_data = plot_data[plot_data['baseMean'] > 0]

    plot_data['log10baseMean'] = np.log10(plot_data['baseMean'])
    plot_data['significance'] = _significance(plot_data, padj_threshold)

    comparisons = _sorted_comparisons(plot_data['comparison'])
    n_facets = len(comparisons)

    fig = px.scatter(
        plot_data,
        x='log10baseMean',
        y='log2FoldChange',
        color='significance',
        color_discrete_map={**SIGNIFICANCE_COLORS, **(colors or {})},
        facet_col='comparison',
        facet_col_wrap=facet_wrap,
        category_orders={
            'comparison': comparisons,
            'significance': list(SIGNIFICANCE_COLORS)
        },
        hover_name='gene',
        render_mode='webgl',
        title=title,
        labels={
            'log10baseMean': 'log<sub>10</sub> (Mean Expression)',
            'log2FoldChange': 'log<sub>2</sub> Fold Change',
            'significance': f'padj < {padj_threshold}'
        }
    )

    fig.update_traces(marker=dict(size=4, opacity=0.6))
    fig.add_hline(y=0, line_color="black", line_width=1)

    n_rows = max(1, int(np.ceil(n_facets / facet_wrap)))
    fig.update_layout(
        template='plotly_white',
        width=1000,
        height=max(400, 320 * n_rows)
    )

    return fig


def create_dendrogram(
    clustering: GeneClustering,
    cut_height: Optional[float] = None,
    show_labels: bool = False,
    title: str = "Gene Dendrogram"
) -> go.Figure:
    """
    Draw the dendrogram of an existing gene clustering.

    Args:
        clustering: Result of cluster_genes
        cut_height: Draw a horizontal line where the tree is cut
        show_labels: Show gene names on the leaves
        title: Plot title

    Returns:
        Plotly Figure object
    """
    fig = ff.create_dendrogram(
        clustering.matrix.to_numpy(),
        labels=clustering.matrix.index.tolist(),
        distfun=lambda _: clustering.distances,
        linkagefun=lambda _: clustering.linkage_matrix,
        color_threshold=cut_height
    )

    if cut_height is not None:
        fig.add_hline(
            y=cut_height,
            line_dash="dash",
            line_color="#E74C3C",
            annotation_text=f"{clustering.n_clusters} clusters",
            annotation_position="top right"
        )

    fig.update_layout(
        title=title,
        yaxis_title="Height",
        template='plotly_white',
        width=1000,
        height=500,
        showlegend=False,
        xaxis=dict(showticklabels=show_labels)
    )

    return fig


def create_cluster_heatmap(
    clustering: GeneClustering,
    title: str = "Clustered Expression Heatmap"
) -> go.Figure:
    """
    Heatmap of scaled expression with genes in dendrogram order.

    Args:
        clustering: Result of cluster_genes
        title: Plot title

    Returns:
        Plotly Figure object
    """
    heatmap_data = clustering.ordered_matrix()
    cluster = clustering.labels.loc[heatmap_data.index]

    fig = go.Figure(data=go.Heatmap(
        z=heatmap_data.values,
        x=heatmap_data.columns.astype(str),
        y=heatmap_data.index,
        customdata=np.repeat(cluster.to_numpy()[:, None], heatmap_data.shape[1], axis=1),
        colorscale='RdBu_r',
        zmid=0,
        colorbar=dict(title="Z-score"),
        hovertemplate='Gene: %{y}<br>Sample: %{x}<br>Cluster: %{customdata}<br>Z-score: %{z:.2f}<extra></extra>'
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Samples",
        yaxis_title="Genes",
        template='plotly_white',
        width=1000,
        height=max(400, min(1200, len(heatmap_data) * 4)),
        xaxis=dict(tickangle=-45, tickfont=dict(size=8)),
        yaxis=dict(showticklabels=len(heatmap_data) <= 60, tickfont=dict(size=8))
    )

    return fig


def create_cluster_trend_plot(
    clustered_trends: pd.DataFrame,
    strain_colors: Optional[Dict[str, str]] = None,
    title: str = "Expression Trends per Cluster"
) -> go.Figure:
    """
    Plot scaled expression over time for each cluster and strain.

    Each gene is drawn as a faint line; the per-time-point median across
    genes is drawn on top.

    Args:
        clustered_trends: Mean trend table with a cluster column
        strain_colors: Mapping of strain to line colour
        title: Plot title

    Returns:
        Plotly Figure object
    """
    strain_colors = strain_colors or {}
    strains = sorted(clustered_trends['strain'].unique())
    clusters = sorted(clustered_trends['cluster'].unique())
    default_colors = px.colors.qualitative.Plotly

    sizes = clustered_trends.groupby('cluster')['gene'].nunique()

    fig = make_subplots(
        rows=len(strains),
        cols=len(clusters),
        shared_xaxes=True,
        shared_yaxes=True,
        row_titles=[str(s) for s in strains],
        column_titles=[f"Cluster {c} (n={sizes[c]})" for c in clusters],
        horizontal_spacing=0.02,
        vertical_spacing=0.06
    )

    for i, strain in enumerate(strains):
        color = strain_colors.get(strain, default_colors[i % len(default_colors)])
        for j, cluster in enumerate(clusters):
            subset = clustered_trends[
                (clustered_trends['strain'] == strain) & (clustered_trends['cluster'] == cluster)
            ].sort_values(['gene', 'minute'])

            # All genes in one trace, separated by gaps
            xs, ys = [], []
            for _, gene_data in subset.groupby('gene', sort=False):
                xs.extend(gene_data['minute'].tolist() + [None])
                ys.extend(gene_data['mean_cts_scaled'].tolist() + [None])

            fig.add_trace(go.Scattergl(
                x=xs,
                y=ys,
                mode='lines',
                line=dict(color='#BDC3C7', width=1),
                opacity=0.4,
                hoverinfo='skip',
                showlegend=False
            ), row=i + 1, col=j + 1)

            median = subset.groupby('minute')['mean_cts_scaled'].median()
            fig.add_trace(go.Scatter(
                x=median.index,
                y=median.values,
                mode='lines+markers',
                line=dict(color=color, width=3),
                name=str(strain),
                legendgroup=str(strain),
                showlegend=(j == 0),
                hovertemplate=f'{strain}, cluster {cluster}<br>' +
                              'minute %{x}: median %{y:.2f}<extra></extra>'
            ), row=i + 1, col=j + 1)

    fig.update_xaxes(title_text="minute", row=len(strains))
    fig.update_yaxes(title_text="scaled expression", col=1)

    fig.update_layout(
        title=title,
        template='plotly_white',
        width=max(700, 240 * len(clusters)),
        height=max(400, 300 * len(strains))
    )

    return fig


def create_gene_trend_plot(
    annotated: pd.DataFrame,
    genes: List[str],
    value: str = 'cts',
    strain_colors: Optional[Dict[str, str]] = None,
    title: str = "Expression of Selected Genes"
) -> go.Figure:
    """
    Plot expression over time for selected genes, one panel per gene.

    Replicates are shown as points and their mean as a line.

    Args:
        annotated: Long table joined with sample information
        genes: Genes to show
        value: Expression column
        strain_colors: Mapping of strain to colour
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = annotated[annotated['gene'].isin(genes)]
    means = (
        plot_data
        .groupby(['gene', 'strain', 'minute'], as_index=False)[value]
        .mean()
    )

    facet_wrap = min(3, max(1, len(genes)))
    category_orders = {'gene': list(genes)}

    fig = px.line(
        means,
        x='minute',
        y=value,
        color='strain',
        facet_col='gene',
        facet_col_wrap=facet_wrap,
        category_orders=category_orders,
        color_discrete_map=strain_colors,
        title=title
    )

    points = px.scatter(
        plot_data,
        x='minute',
        y=value,
        color='strain',
        facet_col='gene',
        facet_col_wrap=facet_wrap,
        category_orders=category_orders,
        color_discrete_map=strain_colors,
        hover_name='sample'
    )
    for trace in points.data:
        trace.showlegend = False
        trace.marker.opacity = 0.6
        fig.add_trace(trace)

    fig.for_each_annotation(lambda a: a.update(text=a.text.split("=")[-1]))
    fig.update_yaxes(matches=None)

    n_rows = int(np.ceil(len(genes) / facet_wrap))
    fig.update_layout(
        template='plotly_white',
        width=1000,
        height=max(400, 300 * n_rows)
    )

    return fig

"""modland: Recombination-landscape modifier simulation.

A discrete-generation, individual-based model of a diploid population
under truncation selection on an additive polygenic trait, where the
recombination map used in each individual's meiosis is chosen by its
genotype at an unlinked biallelic modifier locus.

Comparing runs with the modifier present (three genotype-indexed maps)
against runs with a single fixed map shows how a variable recombination
landscape shapes the response to selection.
"""

__version__ = "0.1.0"

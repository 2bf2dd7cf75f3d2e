"""
ardnet: personal network size from overdispersed Aggregated Relational Data.

Survey respondents report how many people they know in a set of subgroups.
A hierarchical negative-binomial model turns those counts into estimates of
each respondent's network size, each subgroup's prevalence, and how
unevenly each subgroup's ties are spread (overdispersion).
"""

__version__ = "0.1.0"

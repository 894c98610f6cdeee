"""
Restricted cointegration for VECMs

Estimation of the cointegrating vectors of a Johansen VECM under general
linear restrictions R vec(beta) = q, with optional homogeneous restrictions
on the loadings, together with the identification check, standard errors and
the likelihood-ratio test of the restrictions.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm")

from .moments import JohansenMoments
from .restrictions import (
    RestrictionSet,
    RestrictionBlock,
    ExplicitRestrictions,
    AlphaRestrictions,
    translate_restrictions,
    translate_alpha_restrictions,
)
from .identification import IdentificationReport, check_identification
from .likelihood import ConcentratedMoments, LikelihoodEngine
from .initial import starting_values
from .optimizer import (
    AnnealingResult,
    OptimizationResult,
    simulated_annealing,
    lbfgs_refine,
    maximize_likelihood,
)
from .results import RestrictedVECMResult
from .estimate import RestrictionOptions, estimate_restricted_cointegration

__all__ = [
    "JohansenMoments",
    "RestrictionSet",
    "RestrictionBlock",
    "ExplicitRestrictions",
    "AlphaRestrictions",
    "translate_restrictions",
    "translate_alpha_restrictions",
    "IdentificationReport",
    "check_identification",
    "ConcentratedMoments",
    "LikelihoodEngine",
    "starting_values",
    "AnnealingResult",
    "OptimizationResult",
    "simulated_annealing",
    "lbfgs_refine",
    "maximize_likelihood",
    "RestrictedVECMResult",
    "RestrictionOptions",
    "estimate_restricted_cointegration",
]

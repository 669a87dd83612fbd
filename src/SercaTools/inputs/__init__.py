from SercaTools.inputs.conditions import EnvironmentConditions, SPECIES
from SercaTools.inputs.reaction_network import (ReactionNetwork, Transition,
                                                UNIMOLECULAR,
                                                CONCENTRATION_GATED)
from SercaTools.inputs.rate_table import RateTable, FreeParameter
from SercaTools.inputs.reference_curve import ReferenceCurve

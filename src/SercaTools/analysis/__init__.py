from SercaTools.analysis.util import (DoseResponseCurve, weighted_occupancy,
                                      normalize_curve, curve_residual)
from SercaTools.analysis.residual import ResidualEvaluator
from SercaTools.analysis.reporter import BestRunReporter, BestRunReport

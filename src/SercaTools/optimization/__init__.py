from SercaTools.optimization.swarm import (SwarmOptimizer, SwarmState,
                                           Particle, OptimizationHistory,
                                           partition_particles,
                                           gather_partitions, get_bounds)

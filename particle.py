# particle.py

from collections import namedtuple

# Read-only view of one particle, handed to rendering collaborators.
# Mode-specific fields are None unless the observer that owns them is active:
#   trail                        -> classical
#   predicted, prediction_error  -> conscious
#   temperature, heat_capacity   -> thermodynamic
#   proper_time, rest_mass,
#   lorentz_factor               -> relativistic
#   probability, variance        -> probabilistic
Particle = namedtuple(
    'Particle',
    ['id', 'x', 'y', 'vx', 'vy', 'cluster', 'color',
     'trail', 'predicted', 'prediction_error',
     'temperature', 'heat_capacity',
     'proper_time', 'rest_mass', 'lorentz_factor',
     'probability', 'variance'],
    defaults=(None,) * 10,
)

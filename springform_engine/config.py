# --- THE CONSTANTS OF THE SPRINGFORM WORLD ---

# Body Bounds (per creature, fixed capacity)
MIN_NODES = 4; MAX_NODES = 16
MAX_MUSCLES = MAX_NODES * 2
MIN_POSITION = -1.0; MAX_POSITION = 1.0       # Initial XZ box; Y is drawn from [0, MAX_POSITION]
MIN_FRICTION = 0.0; MAX_FRICTION = 1.0
MIN_STRENGTH = 0.001; MAX_STRENGTH = 100.0
MIN_CONTRACTED_LENGTH = 0.25
MIN_EXTENDED_LENGTH = 0.5
MAX_MUSCLE_LENGTH = 2.0                       # Ceiling for mutated extended lengths
MAX_REST_LENGTH = 3.0                         # Diagonal of the initial box; generated lengths never exceed it

# --- MOTION PROGRAM ---
MAX_ACTIONS = MAX_MUSCLES * MAX_MUSCLES       # Slots in one behavior cycle
MUSCLE_NONE = -1                              # No-op slot: hold the current state
ACTION_DENSITY = 0.5                          # Chance a random slot holds a real action
BEHAVIOR_TIME = 1.0                           # Seconds per behavior cycle
ACTION_TIME = BEHAVIOR_TIME / MAX_ACTIONS     # Seconds per slot

# --- PHYSICS ---
TIME_STEP = 0.005        # Forced step of the discretized update
MIN_PARTIAL_STEP = 1e-9  # Remainders shorter than this are not stepped
GRAVITY = -1.0           # Y acceleration
DAMPING = 1.5            # Spring damping along the muscle axis
FRICTION = 20.0          # Ground friction coefficient
RESTITUTION = 0.6        # Bounciness as a node hits the ground
EPSILON = 1e-6           # Zero tolerance for scalars and vectors
INTEGRATOR = "midpoint"  # "midpoint" or "euler"

# --- FITNESS ---
FITNESS_TRIALS = 10          # Behavior cycles per evaluation
FITNESS_INVALID = float('nan')
MAX_ENERGY = 65536.0         # Energy death ceiling
REST_INTERVAL = BEHAVIOR_TIME
MAX_REST_PERIODS = 10        # Settling gives up after this many intervals
MAX_MUTATIONS = 4            # Upper bound of mutation passes per child
GROUND_COLOR_HEIGHT = 0.1    # Nodes below this height render as grounded

# --- GENETIC ENGINE ---
POPULATION_SIZE = 64
MIN_POPULATION = 4
MAX_GENERATIONS = 100
TARGET_FITNESS = -10.0       # Lower is better at the engine
TIMEOUT_NONE = 0             # Solve until the target is met
WORKERS = 1                  # Threads scoring the population

# --- PERSISTENCE ---
CREATURE_MAGIC = b"SPRF"
CREATURE_FORMAT_VERSION = 1

# Experiment Harness
TICKER_INTERVAL = 10
OUTPUT_DIR = "runs"

# --- THE CANONICAL HISTORY ROW ---
HISTORY_KEYS = ['generation', 'best_fitness', 'best_nodes', 'best_muscles']

# springform_engine/creature.py

import threading

import numpy as np

from . import config as cfg # Relative imports
from .engine import get_kernels

# ==============================================================================
# PART 1: THE CREATURE RECORD
# ==============================================================================
# One creature is one record of CREATURE_DTYPE. Handles are record views
# (population[i]), so field sub-arrays write straight into the arena.
# Field order keeps every float64 8-byte aligned and the itemsize a multiple of 8.
CREATURE_DTYPE = np.dtype([
    ('n_nodes', '<i4'),
    ('n_muscles', '<i4'),
    ('action', '<i8'),                 # Behavior cursor: current slot
    ('action_elapsed', '<f8'),         # Seconds spent inside the current slot
    ('clock', '<f8'),                  # Seconds into the current behavior cycle
    ('energy', '<f8'),
    ('fitness', '<f8'),                # NaN until evaluated
    ('node_initial', '<f8', (cfg.MAX_NODES, 3)),
    ('node_position', '<f8', (cfg.MAX_NODES, 3)),
    ('node_velocity', '<f8', (cfg.MAX_NODES, 3)),
    ('node_acceleration', '<f8', (cfg.MAX_NODES, 3)),
    ('node_friction', '<f8', (cfg.MAX_NODES,)),
    ('muscle_extended', '<f8', (cfg.MAX_MUSCLES,)),
    ('muscle_contracted', '<f8', (cfg.MAX_MUSCLES,)),
    ('muscle_strength', '<f8', (cfg.MAX_MUSCLES,)),
    ('muscle_first', '<i4', (cfg.MAX_MUSCLES,)),
    ('muscle_second', '<i4', (cfg.MAX_MUSCLES,)),
    ('behavior', '<i4', (cfg.MAX_ACTIONS,)),
    ('muscle_is_contracted', '?', (cfg.MAX_MUSCLES,)),
])

NODE_FIELDS = ('node_initial', 'node_position', 'node_velocity', 'node_acceleration', 'node_friction')
MUSCLE_FIELDS = ('muscle_first', 'muscle_second', 'muscle_extended', 'muscle_contracted',
                 'muscle_strength', 'muscle_is_contracted')

# The closed set of mutation kinds
MUTATE_NODE_POSITION, MUTATE_NODE_FRICTION = 0, 1
MUTATE_MUSCLE_ANCHOR, MUTATE_MUSCLE_EXTENDED, MUTATE_MUSCLE_CONTRACTED, MUTATE_MUSCLE_STRENGTH = 2, 3, 4, 5
MUTATE_NODE_ADD, MUTATE_NODE_REMOVE, MUTATE_MUSCLE_ADD, MUTATE_MUSCLE_REMOVE = 6, 7, 8, 9
MUTATE_BEHAVIOR_ADD, MUTATE_BEHAVIOR_REMOVE = 10, 11
N_MUTATIONS = 12


def new_creature():
    """A standalone zeroed record, for work outside a population."""
    return np.zeros(1, dtype=CREATURE_DTYPE)[0]


def _body(creature):
    """The field arrays the physics kernels operate on."""
    return (creature['node_position'], creature['node_velocity'], creature['node_acceleration'],
            creature['node_friction'], int(creature['n_nodes']),
            creature['muscle_first'], creature['muscle_second'],
            creature['muscle_extended'], creature['muscle_contracted'],
            creature['muscle_strength'], creature['muscle_is_contracted'],
            int(creature['n_muscles']))


# ==============================================================================
# PART 2: GENERATION
# ==============================================================================
def _random_position():
    return np.array([
        np.random.uniform(cfg.MIN_POSITION, cfg.MAX_POSITION),
        np.random.uniform(0.0, cfg.MAX_POSITION),
        np.random.uniform(cfg.MIN_POSITION, cfg.MAX_POSITION),
    ])


def _generate_node(creature, index):
    creature['node_initial'][index] = _random_position()
    creature['node_position'][index] = creature['node_initial'][index]
    creature['node_velocity'][index] = 0.0
    creature['node_acceleration'][index] = 0.0
    creature['node_friction'][index] = np.random.uniform(cfg.MIN_FRICTION, cfg.MAX_FRICTION)


def _attach_muscle(creature, index, first, second):
    """Places muscle `index` between two nodes with fresh lengths and strength."""
    n_nodes = int(creature['n_nodes'])
    if first == second:
        second = (second + 1) % n_nodes
    initial = creature['node_initial']
    # Relaxed at the rest pose
    extended = np.linalg.norm(initial[second] - initial[first])

    creature['muscle_first'][index] = first
    creature['muscle_second'][index] = second
    creature['muscle_extended'][index] = extended
    creature['muscle_contracted'][index] = np.random.uniform(extended / 2.0, extended)
    creature['muscle_strength'][index] = np.random.uniform(cfg.MIN_STRENGTH, cfg.MAX_STRENGTH)
    creature['muscle_is_contracted'][index] = False


def _generate_muscle(creature, index):
    # The first nNodes muscles chain every node to a lower one, so the graph starts connected
    n_nodes = int(creature['n_nodes'])
    if index < n_nodes:
        first = index
        second = np.random.randint(0, index) if index > 0 else 0
    else:
        first = np.random.randint(0, n_nodes)
        second = np.random.randint(0, n_nodes)
    _attach_muscle(creature, index, first, second)


def create_random(creature):
    n_nodes = np.random.randint(cfg.MIN_NODES, cfg.MAX_NODES + 1)
    n_muscles = np.random.randint(n_nodes, cfg.MAX_MUSCLES + 1)
    creature['n_nodes'] = n_nodes
    creature['n_muscles'] = n_muscles
    for i in range(n_nodes):
        _generate_node(creature, i)
    for i in range(n_muscles):
        _generate_muscle(creature, i)

    actions = np.random.randint(0, n_muscles, cfg.MAX_ACTIONS)
    active = np.random.uniform(0.0, 1.0, cfg.MAX_ACTIONS) < cfg.ACTION_DENSITY
    creature['behavior'] = np.where(active, actions, cfg.MUSCLE_NONE)
    creature['fitness'] = cfg.FITNESS_INVALID
    reset(creature)


def reset(creature):
    """Back to rest at the initial pose. The fitness memo survives."""
    creature['clock'] = 0.0
    creature['action'] = 0
    creature['action_elapsed'] = 0.0
    creature['energy'] = 0.0
    creature['muscle_is_contracted'] = False
    creature['node_position'] = creature['node_initial']
    creature['node_velocity'] = 0.0
    creature['node_acceleration'] = 0.0


# ==============================================================================
# PART 3: STRUCTURAL REPAIR
# ==============================================================================
def _find(parent, i):
    while parent[i] != i:
        parent[i] = parent[parent[i]]
        i = parent[i]
    return i


def _spanning_forest(creature):
    """Union-find over the muscles in slot order. Returns (parent, redundant muscle slots)."""
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    first, second = creature['muscle_first'], creature['muscle_second']
    parent = list(range(n_nodes))
    redundant = []
    for m in range(n_muscles):
        a, b = _find(parent, int(first[m])), _find(parent, int(second[m]))
        if a == b:
            redundant.append(m)
        else:
            parent[b] = a
    return parent, redundant


def _connect(creature):
    """Rewires redundant muscles until one component spans every node."""
    n_nodes = int(creature['n_nodes'])
    while True:
        parent, redundant = _spanning_forest(creature)
        root = _find(parent, 0)
        anchored = [i for i in range(n_nodes) if _find(parent, i) == root]
        if len(anchored) == n_nodes:
            return
        stray = next(i for i in range(n_nodes) if _find(parent, i) != root)
        assert redundant, "disconnected body with no redundant muscle"
        muscle = redundant[np.random.randint(0, len(redundant))]
        _attach_muscle(creature, muscle, anchored[np.random.randint(0, len(anchored))], stray)


def repair_muscles(creature):
    """Restores endpoint, action and connectivity invariants after a structural change."""
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    first = creature['muscle_first'][:n_muscles]
    second = creature['muscle_second'][:n_muscles]

    broken = (first >= n_nodes) | (second >= n_nodes)
    first[broken] %= n_nodes
    second[broken] %= n_nodes
    clash = first == second
    second[clash] = (second[clash] + 1) % n_nodes

    behavior = creature['behavior']
    stale = (behavior != cfg.MUSCLE_NONE) & (behavior >= n_muscles)
    behavior[stale] %= n_muscles

    _connect(creature)


# ==============================================================================
# PART 4: MUTATION
# ==============================================================================
def _remove_muscle(creature):
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    if n_muscles <= n_nodes:
        return
    _, redundant = _spanning_forest(creature)
    if not redundant:
        return
    removed = redundant[np.random.randint(0, len(redundant))]
    last = n_muscles - 1

    behavior = creature['behavior']
    dropped, moved = behavior == removed, behavior == last
    behavior[dropped] = cfg.MUSCLE_NONE
    if removed != last:
        for field in MUSCLE_FIELDS:
            creature[field][removed] = creature[field][last]
        behavior[moved] = removed
    creature['n_muscles'] = last


def _add_node(creature):
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    if n_nodes >= cfg.MAX_NODES:
        return
    # The redundant set is taken before the new node joins, while the body is connected
    _, redundant = _spanning_forest(creature)
    _generate_node(creature, n_nodes)
    creature['n_nodes'] = n_nodes + 1
    partner = np.random.randint(0, n_nodes)
    if n_muscles < cfg.MAX_MUSCLES:
        creature['n_muscles'] = n_muscles + 1
        _attach_muscle(creature, n_muscles, n_nodes, partner)
    else:
        _attach_muscle(creature, redundant[np.random.randint(0, len(redundant))], n_nodes, partner)


def mutate(creature, kind=None):
    """Applies one mutation (uniform over the twelve kinds unless `kind` is given)."""
    if kind is None:
        kind = np.random.randint(0, N_MUTATIONS)
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    node = np.random.randint(0, n_nodes)
    muscle = np.random.randint(0, n_muscles)

    if kind == MUTATE_NODE_POSITION:
        creature['node_initial'][node] = _random_position()
    elif kind == MUTATE_NODE_FRICTION:
        creature['node_friction'][node] = np.random.uniform(cfg.MIN_FRICTION, cfg.MAX_FRICTION)
    elif kind == MUTATE_MUSCLE_ANCHOR:
        second = np.random.randint(0, n_nodes)
        if second == creature['muscle_first'][muscle]:
            second = (second + 1) % n_nodes
        creature['muscle_second'][muscle] = second
    elif kind == MUTATE_MUSCLE_EXTENDED:
        low = max(creature['muscle_contracted'][muscle], cfg.MIN_EXTENDED_LENGTH)
        creature['muscle_extended'][muscle] = np.random.uniform(low, max(low, cfg.MAX_MUSCLE_LENGTH))
    elif kind == MUTATE_MUSCLE_CONTRACTED:
        high = creature['muscle_extended'][muscle]
        creature['muscle_contracted'][muscle] = np.random.uniform(min(cfg.MIN_CONTRACTED_LENGTH, high), high)
    elif kind == MUTATE_MUSCLE_STRENGTH:
        creature['muscle_strength'][muscle] = np.random.uniform(cfg.MIN_STRENGTH, cfg.MAX_STRENGTH)
    elif kind == MUTATE_NODE_ADD:
        _add_node(creature)
    elif kind == MUTATE_NODE_REMOVE:
        if n_nodes > cfg.MIN_NODES:
            creature['n_nodes'] = n_nodes - 1
    elif kind == MUTATE_MUSCLE_ADD:
        if n_muscles < cfg.MAX_MUSCLES:
            creature['n_muscles'] = n_muscles + 1
            _generate_muscle(creature, n_muscles)
    elif kind == MUTATE_MUSCLE_REMOVE:
        _remove_muscle(creature)
    elif kind == MUTATE_BEHAVIOR_ADD:
        slot = np.random.randint(0, cfg.MAX_ACTIONS)
        creature['behavior'][slot] = np.random.randint(0, int(creature['n_muscles']))
    elif kind == MUTATE_BEHAVIOR_REMOVE:
        creature['behavior'][np.random.randint(0, cfg.MAX_ACTIONS)] = cfg.MUSCLE_NONE
    else:
        raise ValueError(f"Unknown mutation kind {kind}")

    repair_muscles(creature)
    creature['fitness'] = cfg.FITNESS_INVALID


# ==============================================================================
# PART 5: BREEDING
# ==============================================================================
def _inherit(mother, father, child, fields, count_field, count):
    """Slot-wise copy from a coin-chosen parent that owns the slot."""
    mother_count, father_count = int(mother[count_field]), int(father[count_field])
    for i in range(count):
        from_mother = (np.random.randint(0, 2) == 0 and i < mother_count) or i >= father_count
        parent = mother if from_mother else father
        for field in fields:
            child[field][i] = parent[field][i]


def breed(mother, father, child):
    """Recombines two parents into `child` (which must not alias either parent)."""
    source = mother if np.random.randint(0, 2) == 0 else father
    n_nodes, n_muscles = int(source['n_nodes']), int(source['n_muscles'])
    child['n_nodes'] = n_nodes
    child['n_muscles'] = n_muscles

    _inherit(mother, father, child, NODE_FIELDS, 'n_nodes', n_nodes)
    _inherit(mother, father, child, MUSCLE_FIELDS, 'n_muscles', n_muscles)
    child['muscle_is_contracted'] = False

    cut = np.random.randint(0, cfg.MAX_ACTIONS)
    child['behavior'][:cut] = mother['behavior'][:cut]
    child['behavior'][cut:] = father['behavior'][cut:]

    repair_muscles(child)
    child['fitness'] = cfg.FITNESS_INVALID
    for _ in range(np.random.randint(0, cfg.MAX_MUTATIONS + 1)):
        mutate(child)
    reset(child)


# ==============================================================================
# PART 6: SIMULATION
# ==============================================================================
_local = threading.local()


def _scratch():
    """The calling thread's kernel work buffer, allocated on first use."""
    scratch = getattr(_local, 'scratch', None)
    if scratch is None:
        scratch = _local.scratch = np.empty((2, 3))
    return scratch


def update(creature, dt):
    """Plain physics for dt seconds; the behavior program does not advance."""
    kernel, _ = get_kernels()
    creature['energy'] = creature['energy'] + kernel(*_body(creature), float(dt), _scratch())


def animate(creature, dt):
    """Physics driven by the behavior program for dt seconds."""
    _, kernel = get_kernels()
    action, elapsed, energy = kernel(*_body(creature), creature['behavior'],
                                     int(creature['action']), float(creature['action_elapsed']),
                                     float(creature['energy']), float(dt), _scratch())
    creature['action'] = action
    creature['action_elapsed'] = elapsed
    creature['energy'] = energy
    creature['clock'] = action * cfg.ACTION_TIME + elapsed


def rest(creature, dt):
    """Steps dt seconds, then reports whether no node slides in X or Z."""
    update(creature, dt)
    velocity = creature['node_velocity'][:int(creature['n_nodes'])]
    return bool(np.all(np.abs(velocity[:, [0, 2]]) < cfg.EPSILON))


def settle(creature, max_periods=cfg.MAX_REST_PERIODS):
    for _ in range(max_periods):
        if rest(creature, cfg.REST_INTERVAL):
            return True
    return False


def centroid(creature):
    return creature['node_position'][:int(creature['n_nodes'])].mean(axis=0)


# ==============================================================================
# PART 7: FITNESS
# ==============================================================================
def walk_fitness(creature):
    """
    Forward (X) distance from the settled centroid, sampled after every behavior
    cycle and averaged, less the Y and Z distance from it sampled the same way.
    """
    settle(creature)
    start = centroid(creature)
    forward, drift = 0.0, 0.0
    for _ in range(cfg.FITNESS_TRIALS):
        animate(creature, cfg.BEHAVIOR_TIME)
        displacement = centroid(creature) - start
        forward += displacement[0]
        drift += abs(displacement[1]) + abs(displacement[2])
    return (forward - drift) / cfg.FITNESS_TRIALS


def fitness(creature):
    """Raw walking fitness (higher is better), memoized on the record."""
    reset(creature)
    memo = creature['fitness']
    if not np.isnan(memo):
        return float(memo)
    value = float(walk_fitness(creature))
    if not np.isfinite(value):
        value = -np.inf
        reset(creature)
    creature['fitness'] = value
    return value


# --- GeneticEngine adapters (lower is better at the engine) ---
def engine_randomize(entity):
    create_random(entity)


def engine_breed(mother, father, son, daughter):
    breed(mother, father, son)
    breed(mother, father, daughter)


def engine_fitness(entity):
    return -fitness(entity)


# ==============================================================================
# PART 8: VALIDATION, RENDERING AND DESCRIPTION
# ==============================================================================
def validate(creature):
    """Human-readable invariant violations; an empty list means the creature is valid."""
    problems = []
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    if not cfg.MIN_NODES <= n_nodes <= cfg.MAX_NODES:
        problems.append(f"node count {n_nodes} outside [{cfg.MIN_NODES}, {cfg.MAX_NODES}]")
    if not n_nodes <= n_muscles <= cfg.MAX_MUSCLES:
        problems.append(f"muscle count {n_muscles} outside [{n_nodes}, {cfg.MAX_MUSCLES}]")
    if problems:
        return problems

    # Playback cursor and accumulators
    action, elapsed = int(creature['action']), float(creature['action_elapsed'])
    if not 0 <= action < cfg.MAX_ACTIONS:
        problems.append(f"action cursor {action} outside [0, {cfg.MAX_ACTIONS})")
    if not 0.0 <= elapsed < cfg.ACTION_TIME:
        problems.append(f"action elapsed {elapsed} outside [0, {cfg.ACTION_TIME})")
    if not np.isfinite(creature['clock']):
        problems.append("clock is not finite")
    if not 0.0 <= creature['energy'] < np.inf:
        problems.append(f"energy {creature['energy']} is not a finite non-negative value")
    if creature['fitness'] == np.inf:
        problems.append("fitness is +inf")

    for field in ('node_initial', 'node_position', 'node_velocity', 'node_acceleration'):
        if not np.isfinite(creature[field][:n_nodes]).all():
            problems.append(f"non-finite {field}")
    if (creature['node_initial'][:n_nodes, 1] < 0.0).any():
        problems.append("node initial height below ground")
    friction = creature['node_friction'][:n_nodes]
    if not ((cfg.MIN_FRICTION <= friction) & (friction <= cfg.MAX_FRICTION)).all():
        problems.append("node friction out of range")

    first = creature['muscle_first'][:n_muscles]
    second = creature['muscle_second'][:n_muscles]
    extended = creature['muscle_extended'][:n_muscles]
    contracted = creature['muscle_contracted'][:n_muscles]
    strength = creature['muscle_strength'][:n_muscles]
    for m in range(n_muscles):
        if not (0 <= first[m] < n_nodes and 0 <= second[m] < n_nodes):
            problems.append(f"muscle {m} endpoint out of range ({first[m]}, {second[m]})")
        elif first[m] == second[m]:
            problems.append(f"muscle {m} connects node {first[m]} to itself")
        if not 0.0 < contracted[m] <= extended[m] <= cfg.MAX_REST_LENGTH:
            problems.append(f"muscle {m} lengths out of bounds ({contracted[m]:.3f}, {extended[m]:.3f})")
        if not cfg.MIN_STRENGTH <= strength[m] <= cfg.MAX_STRENGTH:
            problems.append(f"muscle {m} strength {strength[m]:.3f} out of range")

    behavior = creature['behavior']
    if ((behavior != cfg.MUSCLE_NONE) & ((behavior < 0) | (behavior >= n_muscles))).any():
        problems.append("behavior action out of range")
    if problems:
        return problems

    parent, _ = _spanning_forest(creature)
    root = _find(parent, 0)
    loose = [i for i in range(n_nodes) if _find(parent, i) != root]
    if loose:
        problems.append(f"nodes not spanned by the muscle graph: {loose}")
    return problems


def is_dead(creature):
    return bool(creature['energy'] > cfg.MAX_ENERGY)


def node_positions(creature):
    return creature['node_position'][:int(creature['n_nodes'])].copy()


def node_colors(creature):
    """RGB per node: white, tinted blue on the ground (fully blue at friction 1), red once dead."""
    n_nodes = int(creature['n_nodes'])
    colors = np.ones((n_nodes, 3))
    grounded = creature['node_position'][:n_nodes, 1] < cfg.GROUND_COLOR_HEIGHT
    tint = 1.0 - creature['node_friction'][:n_nodes]
    colors[grounded, 0] = tint[grounded]
    colors[grounded, 1] = tint[grounded]
    if is_dead(creature):
        colors[:, 0] = 1.0
        colors[:, 1] *= 0.5
        colors[:, 2] *= 0.5
    return colors


def muscle_segments(creature):
    """(nMuscles, 2, 3) endpoint positions."""
    n_muscles = int(creature['n_muscles'])
    position = creature['node_position']
    return np.stack([position[creature['muscle_first'][:n_muscles]],
                     position[creature['muscle_second'][:n_muscles]]], axis=1)


def describe(creature):
    n_nodes, n_muscles = int(creature['n_nodes']), int(creature['n_muscles'])
    actions = int(np.count_nonzero(creature['behavior'] != cfg.MUSCLE_NONE))
    lines = [f"Creature: {n_nodes} nodes, {n_muscles} muscles, {actions} actions, "
             f"energy {creature['energy']:.2f}, fitness {creature['fitness']:.4f}"]
    for i in range(n_nodes):
        x, y, z = creature['node_initial'][i]
        lines.append(f"  node {i:2d}: initial ({x:+.3f}, {y:+.3f}, {z:+.3f}) "
                     f"friction {creature['node_friction'][i]:.3f}")
    for m in range(n_muscles):
        phase = "contracted" if creature['muscle_is_contracted'][m] else "extended"
        lines.append(f"  muscle {m:2d}: {creature['muscle_first'][m]:2d} -> {creature['muscle_second'][m]:2d} "
                     f"extended {creature['muscle_extended'][m]:.3f} contracted {creature['muscle_contracted'][m]:.3f} "
                     f"strength {creature['muscle_strength'][m]:.3f} ({phase})")
    return "\n".join(lines)

"""
Drawable container and primitive backend the simulations render into.

The host owns a ``Group`` and hands it to each simulation; the simulation
attaches its own child group and fills it with primitives built by a
``SceneBackend``. Primitives are plain numpy buffers plus material state
(opacity, colour, size), so a rendering front end only has to read them.
"""

import numpy as np


class ResourceExhaustedError(RuntimeError):
    """Backend cannot allocate another primitive"""


# PRIMITIVES

class Primitive:
    kind = 'primitive'

    def __init__(self, name=''):
        self.name = name
        self.visible = True
        self.opacity = 0.0
        self.disposed = False

    def dispose(self):
        self.disposed = True


class Line(Primitive):
    """Polyline with optional per-vertex colours"""
    kind = 'line'

    def __init__(self, n_points, color=0xffffff, vertex_colors=False, name=''):
        super().__init__(name)
        self.positions = np.zeros((n_points, 3), dtype=np.float32)
        self.colors = np.zeros((n_points, 3), dtype=np.float32) if vertex_colors else None
        self.color = color


class Points(Primitive):
    """Point cloud with optional per-point colours"""
    kind = 'points'

    def __init__(self, n_points, size=0.1, color=0xffffff, vertex_colors=False, name=''):
        super().__init__(name)
        self.positions = np.zeros((n_points, 3), dtype=np.float32)
        self.colors = np.zeros((n_points, 3), dtype=np.float32) if vertex_colors else None
        self.size = size
        self.color = color


class Patch(Primitive):
    """
    Flat rectangle subdivided into a (segments + 1)^2 vertex grid.

    ``local`` holds each vertex's in-plane (x, y) coordinate, centred on the
    patch, rows running top (+h/2) to bottom like a textured plane mesh.
    """
    kind = 'patch'

    def __init__(self, width, height, segments=8, name=''):
        super().__init__(name)
        self.width = width
        self.height = height
        self.segments = segments
        x = np.linspace(-width / 2, width / 2, segments + 1)
        y = np.linspace(height / 2, -height / 2, segments + 1)
        X, Y = np.meshgrid(x, y)
        self.local = np.column_stack([X.ravel(), Y.ravel()]).astype(np.float32)
        self.colors = np.zeros((len(self.local), 3), dtype=np.float32)
        self.position = (0.0, 0.0, 0.0)
        self.rotation = (0.0, 0.0, 0.0)

    @property
    def vertex_count(self):
        return len(self.local)


class Marker(Primitive):
    """Sphere-like blob with uniform scale"""
    kind = 'marker'

    def __init__(self, radius, color, position=(0.0, 0.0, 0.0), name=''):
        super().__init__(name)
        self.radius = radius
        self.color = color
        self.position = tuple(position)
        self.scale = 1.0


# CONTAINER

class Group:
    def __init__(self, name=''):
        self.name = name
        self.children = []
        self.visible = True

    def add(self, *items):
        self.children.extend(items)
        return self

    def remove(self, item):
        self.children = [c for c in self.children if c is not item]
        return self

    def traverse(self, fn):
        fn(self)
        for child in self.children:
            if isinstance(child, Group):
                child.traverse(fn)
            else:
                fn(child)

    def primitives(self, kind=None):
        found = []
        self.traverse(lambda obj: found.append(obj) if isinstance(obj, Primitive) else None)
        if kind is not None:
            found = [p for p in found if p.kind == kind]
        return found


# BACKEND

class SceneBackend:
    """
    Primitive factory with an optional allocation budget.

    Parameters
    ----------
    max_primitives : int, optional
        Live primitive limit; allocating past it raises ResourceExhaustedError
    """

    def __init__(self, max_primitives=None):
        self.max_primitives = max_primitives
        self.allocated = 0

    def _allocate(self, primitive):
        if self.max_primitives is not None and self.allocated >= self.max_primitives:
            raise ResourceExhaustedError(
                f"primitive budget of {self.max_primitives} exhausted")
        self.allocated += 1
        return primitive

    def line(self, n_points, color=0xffffff, vertex_colors=False, name=''):
        return self._allocate(Line(n_points, color=color, vertex_colors=vertex_colors, name=name))

    def points(self, n_points, size=0.1, color=0xffffff, vertex_colors=False, name=''):
        return self._allocate(Points(n_points, size=size, color=color,
                                     vertex_colors=vertex_colors, name=name))

    def patch(self, width, height, segments=8, name=''):
        return self._allocate(Patch(width, height, segments=segments, name=name))

    def marker(self, radius, color, position=(0.0, 0.0, 0.0), name=''):
        return self._allocate(Marker(radius, color, position=position, name=name))

    def release(self, primitive):
        if not primitive.disposed:
            primitive.dispose()
            self.allocated = max(0, self.allocated - 1)


def hex_to_rgb(color):
    """0xRRGGBB -> (r, g, b) floats in [0, 1]"""
    return ((color >> 16) & 0xff) / 255.0, ((color >> 8) & 0xff) / 255.0, (color & 0xff) / 255.0

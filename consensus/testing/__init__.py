from .synthetic import (
    SyntheticScene,
    TranslationProblem,
    make_homography_scene,
    make_line_points,
    make_rigid_scene,
    make_rotation_scene,
    make_translation_scene,
    random_rotation,
)

__all__ = [
    'SyntheticScene',
    'TranslationProblem',
    'make_homography_scene',
    'make_line_points',
    'make_rigid_scene',
    'make_rotation_scene',
    'make_translation_scene',
    'random_rotation',
]

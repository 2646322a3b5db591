"""
Quaternion utilities for attitude representation.

This module provides quaternion operations following the scalar-first convention:
    q = [q_w, q_x, q_y, q_z] = [cos(θ/2), sin(θ/2)·n]

where θ is the rotation angle and n is the unit rotation axis.

Convention Notes
----------------
- Scalar-first ordering: q = [w, x, y, z]
- Hamilton product convention
- Attitude quaternions rotate body vectors into the world frame
- Body angular velocity enters by right-multiplication: q̇ = (1/2) q ⊗ [0, ω]
- q and -q represent the same rotation

References
----------
- Diebel (2006) - Representing Attitude: Euler Angles, Unit Quaternions, and Rotation Vectors
- Sola (2017) - Quaternion kinematics for the error-state Kalman filter
"""

import numpy as np

# Norms below this are treated as degenerate and left unnormalized
QUAT_NORM_EPS = 1e-12


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """
    Quaternion multiplication (Hamilton product).

    Computes q1 ⊗ q2, representing the composition of rotations:
    first rotate by q2, then rotate by q1.

    Parameters
    ----------
    q1 : np.ndarray, shape (4,)
        First quaternion [w, x, y, z].
    q2 : np.ndarray, shape (4,)
        Second quaternion [w, x, y, z].

    Returns
    -------
    np.ndarray, shape (4,)
        Product quaternion q1 ⊗ q2.

    Notes
    -----
    The Hamilton product is:
        w = w1*w2 - x1*x2 - y1*y2 - z1*z2
        x = w1*x2 + x1*w2 + y1*z2 - z1*y2
        y = w1*y2 - x1*z2 + y1*w2 + z1*x2
        z = w1*z2 + x1*y2 - y1*x2 + z1*w2
    """
    w1, x1, y1, z1 = np.asarray(q1, dtype=np.float64)
    w2, x2, y2, z2 = np.asarray(q2, dtype=np.float64)

    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def quat_normalize(q: np.ndarray) -> np.ndarray:
    """
    Normalize quaternion to unit length.

    A quaternion whose norm is below ``QUAT_NORM_EPS`` is returned unchanged
    instead of being divided by a near-zero number.

    Parameters
    ----------
    q : np.ndarray, shape (4,)
        Quaternion [w, x, y, z].

    Returns
    -------
    np.ndarray, shape (4,)
        Unit quaternion (or a copy of the input if degenerate).

    Examples
    --------
    >>> q = np.array([1, 1, 0, 0])
    >>> np.linalg.norm(quat_normalize(q))
    1.0
    """
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < QUAT_NORM_EPS:
        return q.copy()
    return q / norm


def quat_rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Rotate a vector by a quaternion.

    Computes v' = q ⊗ v ⊗ q* using the cross-product form of the
    sandwich product, which avoids two full quaternion multiplies:

        t  = 2 (q_v × v)
        v' = v + w·t + q_v × t

    Parameters
    ----------
    q : np.ndarray, shape (4,)
        Unit quaternion [w, x, y, z] (body to world).
    v : np.ndarray, shape (3,)
        Vector in the body frame.

    Returns
    -------
    np.ndarray, shape (3,)
        Vector expressed in the world frame.

    Examples
    --------
    >>> q = quat_from_axis_angle(np.array([1.0, 0, 0]), np.pi / 2)
    >>> quat_rotate(q, np.array([0.0, 1.0, 0.0]))  # approximately [0, 0, 1]
    """
    q = np.asarray(q, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)

    w = q[0]
    q_vec = q[1:4]
    t = 2.0 * np.cross(q_vec, v)
    return v + w * t + np.cross(q_vec, t)


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Create a quaternion from axis-angle representation.

    Parameters
    ----------
    axis : np.ndarray, shape (3,)
        Rotation axis (will be normalized).
    angle : float
        Rotation angle in radians.

    Returns
    -------
    np.ndarray, shape (4,)
        Unit quaternion [w, x, y, z]. Identity if the axis is degenerate.
    """
    axis = np.asarray(axis, dtype=np.float64)

    norm = np.linalg.norm(axis)
    if norm < QUAT_NORM_EPS:
        return quat_identity()
    axis = axis / norm

    half_angle = angle / 2.0
    xyz = np.sin(half_angle) * axis

    return np.array([np.cos(half_angle), xyz[0], xyz[1], xyz[2]])


def omega_matrix(omega: np.ndarray) -> np.ndarray:
    """
    Construct the Ω(ω) matrix for body-rate quaternion kinematics.

    Satisfies q ⊗ [0, ω] = Ω(ω) q, so that q̇ = (1/2) Ω(ω) q.

    Parameters
    ----------
    omega : np.ndarray, shape (3,)
        Angular velocity vector [ωx, ωy, ωz] in body frame.

    Returns
    -------
    np.ndarray, shape (4, 4)
        The Ω matrix.

    Notes
    -----
    The matrix has the form:
        Ω = [ 0   -ωx  -ωy  -ωz]
            [ωx    0   ωz  -ωy]
            [ωy  -ωz    0   ωx]
            [ωz   ωy  -ωx    0]
    """
    wx, wy, wz = np.asarray(omega, dtype=np.float64)

    return np.array(
        [
            [0.0, -wx, -wy, -wz],
            [wx, 0.0, wz, -wy],
            [wy, -wz, 0.0, wx],
            [wz, wy, -wx, 0.0],
        ]
    )


def quat_rate_matrix(q: np.ndarray) -> np.ndarray:
    """
    Construct the G(q) matrix mapping body rates to the quaternion product.

    Satisfies q ⊗ [0, ω] = G(q) ω, i.e. G(q) = ∂(q ⊗ [0, ω])/∂ω.

    Parameters
    ----------
    q : np.ndarray, shape (4,)
        Quaternion [w, x, y, z].

    Returns
    -------
    np.ndarray, shape (4, 3)
        Columns are the derivatives with respect to ωx, ωy, ωz.
    """
    w, x, y, z = np.asarray(q, dtype=np.float64)

    return np.array(
        [
            [-x, -y, -z],
            [w, -z, y],
            [z, w, -x],
            [-y, x, w],
        ]
    )


def quat_derivative(q: np.ndarray, omega: np.ndarray) -> np.ndarray:
    """
    Compute quaternion derivative given body angular velocity.

    q̇ = (1/2) q ⊗ [0, ω] = (1/2) Ω(ω) q
    """
    q = np.asarray(q, dtype=np.float64)
    return 0.5 * omega_matrix(omega) @ q


def quat_integrate(q: np.ndarray, omega: np.ndarray, dt: float) -> np.ndarray:
    """
    Integrate quaternion with one explicit Euler step and renormalize.

    Parameters
    ----------
    q : np.ndarray, shape (4,)
        Current quaternion [w, x, y, z].
    omega : np.ndarray, shape (3,)
        Angular velocity in body frame.
    dt : float
        Time step.

    Returns
    -------
    np.ndarray, shape (4,)
        Quaternion at next time step.
    """
    q = np.asarray(q, dtype=np.float64)
    return quat_normalize(q + dt * quat_derivative(q, omega))


def quat_integrate_exact(q: np.ndarray, omega: np.ndarray, dt: float) -> np.ndarray:
    """
    Exact quaternion integration for constant body angular velocity.

    Uses the exponential map: q_{k+1} = q_k ⊗ q_Δ
    where q_Δ = [cos(|ω|dt/2), sin(|ω|dt/2) * ω/|ω|]

    Rates with magnitude below 1e-10 leave the quaternion unchanged.
    """
    q = np.asarray(q, dtype=np.float64)
    omega = np.asarray(omega, dtype=np.float64)

    omega_norm = np.linalg.norm(omega)
    if omega_norm < 1e-10:
        return q.copy()

    q_delta = quat_from_axis_angle(omega / omega_norm, omega_norm * dt)
    return quat_normalize(quat_multiply(q, q_delta))


def quat_hemisphere_align(q_ref: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    Choose the sign of a reference quaternion closest to another quaternion.

    Since q and -q encode the same rotation, the reference is negated when
    its dot product with ``q`` is negative so that component-wise
    differences measure the short way around.

    Parameters
    ----------
    q_ref : np.ndarray, shape (4,)
        Reference quaternion to align.
    q : np.ndarray, shape (4,)
        Quaternion defining the hemisphere.

    Returns
    -------
    np.ndarray, shape (4,)
        ``q_ref`` or ``-q_ref``.
    """
    q_ref = np.asarray(q_ref, dtype=np.float64)
    if np.dot(q_ref, np.asarray(q, dtype=np.float64)) < 0:
        return -q_ref
    return q_ref.copy()


def quat_identity() -> np.ndarray:
    """Return the identity quaternion [1, 0, 0, 0]."""
    return np.array([1.0, 0.0, 0.0, 0.0])


def quat_random(rng: np.random.Generator = None) -> np.ndarray:
    """
    Generate a random unit quaternion (uniformly distributed on SO(3)).

    Parameters
    ----------
    rng : np.random.Generator, optional
        Random number generator. If None, uses default.

    Returns
    -------
    np.ndarray, shape (4,)
        Random unit quaternion.
    """
    if rng is None:
        rng = np.random.default_rng()

    # Subgroup algorithm (Shoemake)
    u1, u2, u3 = rng.random(3)

    q = np.array(
        [
            np.sqrt(1 - u1) * np.sin(2 * np.pi * u2),
            np.sqrt(1 - u1) * np.cos(2 * np.pi * u2),
            np.sqrt(u1) * np.sin(2 * np.pi * u3),
            np.sqrt(u1) * np.cos(2 * np.pi * u3),
        ]
    )

    return np.array([q[3], q[0], q[1], q[2]])

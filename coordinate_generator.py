"""
Servo-horn Stewart platform geometry and per-leg inverse kinematics.

Frame: base XY plane, +Z up, mm. Leg i has
  bottom[i]  servo axle anchor
  horn[i]    horn ball link position at servo 0 deg
  upper[i]   platform ball link position at the home pose
Servo 1 is described by B1/H1/U1; the other five are rotated and X-mirrored
copies (servos 1,3,5 rotate servo 1 about Z, servos 2,4,6 rotate its mirror).
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

DEG2RAD = np.pi / 180.0

# Geometry constants
LINK_LENGTH = 162.21128  # mm (ball link center to center)

# Base geometry for servo 1
B1 = np.array([-50.0, 100.0, 10.0])
H1 = np.array([-85.0, 108.0 + 3.3 / 2.0, 10.0])
U1 = np.array([-7.5, 108.0 + 3.3 / 2.0, 152.5])

def rotate_z(p, deg):
  """Rotate point about Z axis (Yaw)"""
  rad = deg * DEG2RAD
  c = np.cos(rad)
  s = np.sin(rad)
  x, y, z = p
  return np.array([x * c - y * s, x * s + y * c, z])

def mirror_x(p):
  """Mirror across YZ plane (negate X coordinate)"""
  x, y, z = p
  return np.array([-x, y, z])

def get_servo_axis(index):
  """
  Return the servo rotation axis (unit vector in global coordinates) for leg index 0..5.
  Hardware: axes lie in the XY plane and point radially outward.
  - Servos 1 & 6 (indices 0 & 5): axis along +Y (0, 1, 0)
  - Servos 2 & 3 (indices 1 & 2): axis is +120° yaw from +Y
  - Servos 4 & 5 (indices 3 & 4): axis is -120° yaw from +Y
  """
  base_axis = np.array([0.0, 1.0, 0.0])
  if index in (0, 5):
    angle = 0.0
  elif index in (1, 2):
    angle = 120.0
  elif index in (3, 4):
    angle = -120.0
  else:
    raise ValueError(f"Invalid servo index: {index}")

  axis = rotate_z(base_axis, angle)
  return axis / np.linalg.norm(axis)

def build_servo_frame(axis):
  """
  Build an orthonormal basis (rotation matrix) for a servo's local frame.
  Local frame is defined so that:
    - local Z axis aligns with the given 'axis' (servo rotation axis)
    - local X,Y span the plane perpendicular to axis
  Returns a 3x3 matrix R such that:
    v_local = R @ v_global
    v_global = R.T @ v_local
  """
  e_z = np.asarray(axis, dtype=float)
  # Choose a reference vector not parallel to e_z
  ref = np.array([0.0, 0.0, 1.0])
  if abs(np.dot(ref, e_z)) > 0.99:
    ref = np.array([1.0, 0.0, 0.0])

  e_x = np.cross(ref, e_z)
  e_x /= np.linalg.norm(e_x)
  e_y = np.cross(e_z, e_x)
  return np.vstack((e_x, e_y, e_z))

def generate_coordinates():
  """Bottom, horn (0 deg) and upper anchors as (6,3) arrays."""
  bottom = np.zeros((6, 3))
  horn = np.zeros((6, 3))
  upper = np.zeros((6, 3))

  # Servos 1,3,5: rotations of servo1 about Z axis
  for i, a in enumerate((0.0, 120.0, 240.0)):
    idx = i * 2  # 0,2,4
    bottom[idx] = rotate_z(B1, a)
    horn[idx]   = rotate_z(H1, a)
    upper[idx]  = rotate_z(U1, a)

  # Servos 2,4,6: X-mirror of servo1 rotated by 120°, 240° and 0°
  B1m = mirror_x(B1)
  H1m = mirror_x(H1)
  U1m = mirror_x(U1)
  for idx, a in ((1, 120.0), (3, 240.0), (5, 0.0)):
    bottom[idx] = rotate_z(B1m, a)
    horn[idx]   = rotate_z(H1m, a)
    upper[idx]  = rotate_z(U1m, a)

  return bottom, horn, upper

# ---------------- Horn geometry ----------------

def _split_horn(bottom: np.ndarray, horn_0deg: np.ndarray, index: int) -> Tuple[np.ndarray, np.ndarray]:
  """(axial, radial) parts of horn[index] - bottom[index] w.r.t. the servo axis."""
  axis = get_servo_axis(index)
  h = np.asarray(horn_0deg[index], dtype=float) - np.asarray(bottom[index], dtype=float)
  axial = axis * float(np.dot(h, axis))
  return axial, h - axial

def horn_radius(bottom: np.ndarray, horn_0deg: np.ndarray, index: int = 0) -> float:
  """
  Horn perpendicular length (the rotating radius) of one leg.
  Legs are symmetric, so leg 0 stands for all of them.
  """
  _, radial = _split_horn(bottom, horn_0deg, index)
  return float(np.linalg.norm(radial))

def rebuild_horns_with_horn_len(
  bottom: np.ndarray,
  horn_0deg: np.ndarray,
  horn_len_mm: float,
) -> np.ndarray:
  """
  Horn ball positions at 0 deg with every radius set to horn_len_mm.
  Each horn keeps its direction and its offset along the servo axis.
  """
  if not horn_len_mm > 0:
    raise ValueError(f"horn length must be > 0 mm, got {horn_len_mm}")

  out = np.empty((bottom.shape[0], 3), dtype=float)
  for i in range(bottom.shape[0]):
    axial, radial = _split_horn(bottom, horn_0deg, i)
    r = float(np.linalg.norm(radial))
    if r < 1e-9:
      raise ValueError(f"servo {i + 1}: horn has no radial component to scale")
    out[i] = bottom[i] + axial + radial * (horn_len_mm / r)
  return out

def auto_home_upper_z(upper_ref: np.ndarray, horn_0deg: np.ndarray, linkage_len_mm: float) -> np.ndarray:
  """
  Lift the upper plate along Z until the leg-0 link spans exactly linkage_len_mm
  with the servo at 0 deg. XY of the plate is untouched; by symmetry every other
  leg then closes as well.
  """
  horiz = float(np.linalg.norm(upper_ref[0, :2] - horn_0deg[0, :2]))
  if linkage_len_mm < horiz:
    raise ValueError(f"Impossible home pose: link {linkage_len_mm:.3f} mm is shorter than "
                     f"the {horiz:.3f} mm horizontal gap between horn and plate")

  rise = math.sqrt(linkage_len_mm ** 2 - horiz ** 2)
  homed = np.array(upper_ref, dtype=float, copy=True)
  homed[:, 2] += horn_0deg[0, 2] + rise - upper_ref[0, 2]
  return homed

def horn_pivots(bottom: np.ndarray, horn_0deg: np.ndarray) -> np.ndarray:
  """Point on each servo axis lying in that horn's plane of rotation."""
  return np.array([bottom[i] + _split_horn(bottom, horn_0deg, i)[0] for i in range(bottom.shape[0])])

def horn_azimuths(bottom: np.ndarray, horn_0deg: np.ndarray) -> np.ndarray:
  """Base-frame azimuth (rad) of each horn at servo 0 deg."""
  beta = np.zeros(bottom.shape[0], dtype=float)
  for i in range(bottom.shape[0]):
    _, radial = _split_horn(bottom, horn_0deg, i)
    beta[i] = math.atan2(float(radial[1]), float(radial[0]))
  return beta

# ---------------- Pose helpers ----------------

def euler_to_rotmat(rx_rad: float, ry_rad: float, rz_rad: float) -> np.ndarray:
  """
  R = Rz(rz) * Ry(ry) * Rx(rx): roll about X first, then pitch about Y, then yaw about Z.
  """
  cx, sx = math.cos(rx_rad), math.sin(rx_rad)
  cy, sy = math.cos(ry_rad), math.sin(ry_rad)
  cz, sz = math.cos(rz_rad), math.sin(rz_rad)
  return np.array([
    [cz * cy, cz * sy * sx - sz * cx, cz * sy * cx + sz * sx],
    [sz * cy, sz * sy * sx + cz * cx, sz * sy * cx - cz * sx],
    [-sy, cy * sx, cy * cx],
  ], dtype=float)

def transform_upper_anchors(upper_home: np.ndarray, R: np.ndarray, position: np.ndarray) -> np.ndarray:
  """Rotate about plate center with rotation matrix R, then translate."""
  src = np.asarray(upper_home, dtype=float)
  center = src.mean(axis=0)
  # points are rows, so apply as (R @ p) => centered @ R.T
  out = (src - center) @ np.asarray(R, dtype=float).T
  return out + center + np.asarray(position, dtype=float).reshape(3)

# ---------------- Inverse kinematics ----------------

def solve_servo_angle_z_axis(h0: np.ndarray, u: np.ndarray, L: float) -> Optional[Tuple[float, float]]:
  """
  Both servo angles (deg) that put the horn ball at distance L from u.

  Everything is in the servo-local frame: axle at the origin, rotation about +Z,
  h0 is the horn ball at 0 deg. Rotating h0 by theta gives
    A*cos(theta) + B*sin(theta) = C
  with A, B, C below. Returns None when the link cannot close.
  """
  A = u[0] * h0[0] + u[1] * h0[1]
  B = u[1] * h0[0] - u[0] * h0[1]
  C = 0.5 * (float(np.dot(u, u)) + float(np.dot(h0, h0)) - L * L) - u[2] * h0[2]

  amp = math.hypot(A, B)
  if amp < 1e-9 or abs(C) > amp:
    return None

  phase = math.atan2(B, A)
  spread = math.acos(C / amp)
  return math.degrees(phase + spread), math.degrees(phase - spread)

def pick_solution(theta1, theta2, prefer_deg=0.0):
  """Of the two leg solutions, wrapped to [-180, 180), return the one closest to prefer_deg."""
  wrapped = [(t + 180.0) % 360.0 - 180.0 for t in (theta1, theta2)]
  return min(wrapped, key=lambda t: abs(t - prefer_deg))

def solve_leg_angles(
  bottom: np.ndarray,
  horn_0deg: np.ndarray,
  upper_target: np.ndarray,
  L: float,
) -> Tuple[np.ndarray, np.ndarray]:
  """
  Servo angles for all legs.

  Returns:
    angles: (6,) degrees, NaN where the leg has no solution
    horn_ik: (6,3) horn ball positions at those angles (0 deg position for failed legs)
  """
  n = bottom.shape[0]
  angles = np.full(n, np.nan, dtype=float)
  horn_ik = np.array(horn_0deg, dtype=float, copy=True)

  for i in range(n):
    R = build_servo_frame(get_servo_axis(i))
    h0 = R @ (horn_0deg[i] - bottom[i])
    sol = solve_servo_angle_z_axis(h0, R @ (upper_target[i] - bottom[i]), L)
    if sol is None:
      continue
    angles[i] = pick_solution(*sol)
    horn_ik[i] = bottom[i] + R.T @ rotate_z(h0, angles[i])

  return angles, horn_ik

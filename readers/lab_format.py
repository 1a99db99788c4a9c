"""Layout constants of the .lab skeletal animation format (little endian).

Header (20 bytes):
  char[4] magic        "LABF"
  u32     version      VERSION_1 or VERSION_2
  u32     bone_count
  u32     dummy_count
  u32     clip_count

Bone record (BONE_RECORD_SIZE bytes) x bone_count:
  char[64] name        NUL padded
  u32      id          must equal the record position
  u32      parent_id   NO_PARENT for roots, otherwise < id
  3f translation, 4f rotation (x, y, z, w), 3f scale

Dummy record (DUMMY_RECORD_SIZE bytes) x dummy_count:
  u32 id, u32 parent_bone_id, 3f translation, 4f rotation (x, y, z, w), 3f scale

Clip x clip_count:
  cstring name
  f32     frame_rate
  u32     key_type     (VERSION_2 only; VERSION_1 is always KEY_TRS)
  u32     track_count
  track x track_count:
    u32 bone_index, u32 key_count, key_count x (f32 time + key payload)

Optional mesh block (only when bytes remain after the clip table):
  u32     mesh_flags   0 = no mesh
  cstring name
  u32     vertex_count, u32 index_count
  vertex_count x 3f positions
  vertex_count x 3f normals        (if MESH_HAS_NORMALS)
  index_count x u32 triangle indices
  vertex_count x (4 x u8 bone indices + 4 x f32 weights)
"""

MAGIC = b"LABF"

VERSION_1 = 0x1000
VERSION_2 = 0x1001
SUPPORTED_VERSIONS = (VERSION_1, VERSION_2)

HEADER_SIZE = 20

NO_PARENT = 0xFFFFFFFF
BONE_NAME_SIZE = 64

# 3f translation + 4f rotation + 3f scale
TRANSFORM_SIZE = 40
BONE_RECORD_SIZE = BONE_NAME_SIZE + 8 + TRANSFORM_SIZE
DUMMY_RECORD_SIZE = 8 + TRANSFORM_SIZE

# --- Key encodings ---
KEY_MAT43 = 1   # 12 x f32, row-vector 4x3
KEY_MAT44 = 2   # 16 x f32, row-vector 4x4
KEY_QUAT = 3    # 3f translation + 4f rotation, unit scale
KEY_TRS = 4     # 3f translation + 4f rotation + 3f scale

KEY_PAYLOAD_SIZES = {
    KEY_MAT43: 48,
    KEY_MAT44: 64,
    KEY_QUAT: 28,
    KEY_TRS: TRANSFORM_SIZE,
}

KEY_TYPE_NAMES = {
    KEY_MAT43: "MAT43",
    KEY_MAT44: "MAT44",
    KEY_QUAT: "QUAT",
    KEY_TRS: "TRS",
}

# --- Mesh block flags ---
MESH_PRESENT = 0x01
MESH_HAS_NORMALS = 0x02

INFLUENCES_PER_VERTEX = 4

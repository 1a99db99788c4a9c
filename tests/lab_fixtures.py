"""
Struct-based writer that synthesizes .lab buffers for tests.

Keys are given as (time, payload) where payload is the flat list of floats in
on-disk order for the clip's key type; the *_key helpers build them.
"""

import struct

from readers import lab_format as fmt

IDENTITY = (1.0, 0.0, 0.0, 0.0)


class LabWriter:
    """Little-endian byte sink mirroring readers.binary_reader.BinaryReader"""

    def __init__(self):
        self._buffer = bytearray()

    def write_bytes(self, data: bytes) -> None:
        self._buffer.extend(data)

    def write_u8(self, v: int) -> None:
        self._buffer.extend(struct.pack('<B', v))

    def write_u32(self, v: int) -> None:
        self._buffer.extend(struct.pack('<I', v))

    def write_f32(self, v: float) -> None:
        self._buffer.extend(struct.pack('<f', v))

    def write_floats(self, values) -> None:
        values = list(values)
        self._buffer.extend(struct.pack(f'<{len(values)}f', *values))

    def write_cstring(self, s: str) -> None:
        self._buffer.extend(s.encode('utf-8'))
        self._buffer.append(0)

    def write_fixed_string(self, s: str, size: int) -> None:
        raw = s.encode('utf-8')[:size]
        self._buffer.extend(raw.ljust(size, b'\x00'))

    def write_transform(self, translation, rotation, scale) -> None:
        """rotation is (w, x, y, z); stored as x, y, z, w"""
        w, x, y, z = rotation
        self.write_floats(tuple(translation) + (x, y, z, w) + tuple(scale))

    @property
    def size(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


# === Record helpers ===

def bone(name, parent=None, translation=(0.0, 0.0, 0.0), rotation=IDENTITY, scale=(1.0, 1.0, 1.0), bone_id=None):
    return {
        'name': name,
        'parent': parent,
        'translation': translation,
        'rotation': rotation,
        'scale': scale,
        'id': bone_id,
    }


def dummy(dummy_id, parent_bone, translation=(0.0, 0.0, 0.0), rotation=IDENTITY, scale=(1.0, 1.0, 1.0)):
    return {
        'id': dummy_id,
        'parent': parent_bone,
        'translation': translation,
        'rotation': rotation,
        'scale': scale,
    }


def trs_key(time, translation=(0.0, 0.0, 0.0), rotation=IDENTITY, scale=(1.0, 1.0, 1.0)):
    w, x, y, z = rotation
    return (time, list(translation) + [x, y, z, w] + list(scale))


def quat_key(time, translation=(0.0, 0.0, 0.0), rotation=IDENTITY):
    w, x, y, z = rotation
    return (time, list(translation) + [x, y, z, w])


def mat43_key(time, rows):
    """rows: 4 rows of 3 floats, row-vector layout (translation in row 3)"""
    return (time, [v for row in rows for v in row])


def mat44_key(time, rows):
    return (time, [v for row in rows for v in row])


def clip(name, tracks, frame_rate=30.0, key_type=fmt.KEY_TRS):
    """tracks: list of (bone_index, [keys])"""
    return {'name': name, 'frame_rate': frame_rate, 'key_type': key_type, 'tracks': tracks}


def mesh(positions, indices, influences, normals=None, name="Body"):
    """influences: per vertex (4 bone indices, 4 weights)"""
    return {
        'name': name,
        'positions': positions,
        'normals': normals,
        'indices': indices,
        'influences': influences,
    }


def build_lab(bones, clips=(), dummies=(), mesh_block=None, version=fmt.VERSION_2,
              magic=fmt.MAGIC, trailing=b"", mesh_flags=None):
    """Serialize records into a complete .lab buffer"""
    writer = LabWriter()

    writer.write_bytes(magic)
    writer.write_u32(version)
    writer.write_u32(len(bones))
    writer.write_u32(len(dummies))
    writer.write_u32(len(clips))

    for index, b in enumerate(bones):
        writer.write_fixed_string(b['name'], fmt.BONE_NAME_SIZE)
        writer.write_u32(index if b['id'] is None else b['id'])
        writer.write_u32(fmt.NO_PARENT if b['parent'] is None else b['parent'])
        writer.write_transform(b['translation'], b['rotation'], b['scale'])

    for d in dummies:
        writer.write_u32(d['id'])
        writer.write_u32(d['parent'])
        writer.write_transform(d['translation'], d['rotation'], d['scale'])

    for c in clips:
        writer.write_cstring(c['name'])
        writer.write_f32(c['frame_rate'])
        if version != fmt.VERSION_1:
            writer.write_u32(c['key_type'])
        writer.write_u32(len(c['tracks']))
        for bone_index, keys in c['tracks']:
            writer.write_u32(bone_index)
            writer.write_u32(len(keys))
            for time, payload in keys:
                writer.write_f32(time)
                writer.write_floats(payload)

    if mesh_block is not None:
        flags = fmt.MESH_PRESENT
        if mesh_block['normals'] is not None:
            flags |= fmt.MESH_HAS_NORMALS
        writer.write_u32(flags if mesh_flags is None else mesh_flags)
        writer.write_cstring(mesh_block['name'])
        writer.write_u32(len(mesh_block['positions']))
        writer.write_u32(len(mesh_block['indices']))
        for p in mesh_block['positions']:
            writer.write_floats(p)
        if mesh_block['normals'] is not None:
            for n in mesh_block['normals']:
                writer.write_floats(n)
        for i in mesh_block['indices']:
            writer.write_u32(i)
        for bone_indices, weights in mesh_block['influences']:
            for b in bone_indices:
                writer.write_u8(b)
            writer.write_floats(weights)

    writer.write_bytes(trailing)
    return writer.getvalue()


def three_bone_chain():
    """root -> child -> grandchild, identity bind transforms"""
    return [bone("root"), bone("child", parent=0), bone("grandchild", parent=1)]


def single_key_clip(bone_count, name="idle"):
    """One clip with one identity key per bone at time 0"""
    return clip(name, [(i, [trs_key(0.0)]) for i in range(bone_count)])

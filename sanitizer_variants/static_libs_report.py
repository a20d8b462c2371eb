# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Exports statically linked sanitized modules to the packaging layer."""

import collections
import threading

import ninja_syntax

from sanitizer_variants import sanitizer_types

_MAKE_VAR_FORMAT = 'SOONG_%s_%s_%s_STATIC_LIBRARIES'

_STATIC_NAME_SUFFIX_SANITIZERS = [
    sanitizer_types.CFI,
    sanitizer_types.HWASAN,
    sanitizer_types.SCS,
]


class SanitizerStaticLibsMap(object):
  """Static libraries built with one sanitizer, per image and per arch.

  add() may be called from several worker threads of the same pass.
  """

  def __init__(self, sanitizer):
    self.sanitizer = sanitizer
    self._libs = collections.defaultdict(lambda: collections.defaultdict(list))
    self._lock = threading.Lock()

  def add(self, module, name):
    with self._lock:
      self._libs[module.image][module.arch].append(name)

  def get(self, image, arch):
    with self._lock:
      return sorted(self._libs.get(image, {}).get(arch, []))

  def export_to_make(self):
    """Returns (name, value) pairs in a stable order.

    e.g. ('SOONG_cfi_core_arm64_STATIC_LIBRARIES', 'libbar libfoo')
    """
    result = []
    with self._lock:
      for image in sorted(self._libs):
        arch_map = self._libs[image]
        for arch in sorted(arch_map):
          key = _MAKE_VAR_FORMAT % (self.sanitizer.variation_name, image, arch)
          result.append((key, ' '.join(sorted(arch_map[arch]))))
    return result


def get_make_vars(session):
  """Returns the exported variables of every sanitizer of |session|."""
  result = []
  for libs_map in session.get_all_static_libs():
    result.extend(libs_map.export_to_make())
  return result


def write_make_vars(output, session):
  """Writes the exported variables as ninja variable definitions."""
  writer = ninja_syntax.Writer(output)
  writer.comment('Statically linked modules built in a sanitized variation.')
  for key, value in get_make_vars(session):
    writer.variable(key, value)


def get_sub_name(module):
  """Returns the name suffix for a static or header library variation.

  Both the sanitized and the unsanitized variations of these libraries are
  surfaced to make for cfi, hwasan and scs, so they need distinct names.
  """
  if not (module.is_static() or module.is_header()):
    return ''
  if module.sanitize is None:
    return ''
  return ''.join(t.static_suffix for t in _STATIC_NAME_SUFFIX_SANITIZERS
                 if module.sanitize.is_enabled(t))


def get_make_name(module):
  return module.name + get_sub_name(module)

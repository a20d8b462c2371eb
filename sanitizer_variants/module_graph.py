# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Module records, sanitize properties and the dependency graph.

A Module is one (identity, variation) pair. Variations of the same logical
module share |name| and differ in |variations|, which maps the variation name
of each splitting sanitizer to either '' (the base variation) or the
sanitizer's variation name.
"""

import collections
import copy

from sanitizer_variants import sanitizer_types
from sanitizer_variants import toolchain

# Module kinds.
BINARY = 'binary'
SHARED_LIBRARY = 'shared'
STATIC_LIBRARY = 'static'
HEADER_LIBRARY = 'header'
ALL_KINDS = [BINARY, SHARED_LIBRARY, STATIC_LIBRARY, HEADER_LIBRARY]

# Linkage kinds of dependency edges.
STATIC_DEP = 'static'
SHARED_DEP = 'shared'
HEADER_DEP = 'header'
EXPORT_DEP = 'export'
OBJECT_REUSE_DEP = 'object_reuse'
OTHER_DEP = 'other'
ALL_LINKAGE_KINDS = [STATIC_DEP, SHARED_DEP, HEADER_DEP, EXPORT_DEP,
                     OBJECT_REUSE_DEP, OTHER_DEP]
_SANITIZABLE_LINKAGE_KINDS = frozenset(
    [STATIC_DEP, SHARED_DEP, HEADER_DEP, EXPORT_DEP])

# Module roles. Every per-role decision table must cover all of these; see
# check_role_table().
ROLE_PLATFORM_NATIVE = 'platform_native'
ROLE_APEX = 'apex'
ROLE_JNI = 'jni'
ROLE_SNAPSHOT = 'snapshot'
ROLE_OTHER = 'other'
ALL_ROLES = (ROLE_PLATFORM_NATIVE, ROLE_APEX, ROLE_JNI, ROLE_SNAPSHOT,
             ROLE_OTHER)

# Image (partition) names used in the exported static library lists.
CORE_IMAGE = 'core'
VENDOR_IMAGE = 'vendor'
PRODUCT_IMAGE = 'product'
RECOVERY_IMAGE = 'recovery'
RAMDISK_IMAGE = 'ramdisk'
VENDOR_RAMDISK_IMAGE = 'vendor_ramdisk'
HOST_IMAGE = 'host'

DEVICE_OS = 'android'


class GraphError(Exception):
  """Raised for a malformed dependency graph."""


def is_sanitizable_linkage(kind):
  if kind not in ALL_LINKAGE_KINDS:
    raise GraphError('unknown linkage kind %r' % kind)
  return kind in _SANITIZABLE_LINKAGE_KINDS


def check_role_table(table, what):
  """Asserts that |table| has an entry for every module role."""
  missing = set(ALL_ROLES) - set(table)
  extra = set(table) - set(ALL_ROLES)
  assert not missing and not extra, (
      '%s: missing roles %s, unknown roles %s' % (
          what, sorted(missing), sorted(extra)))
  return table


class DiagProperties(object):
  def __init__(self, undefined=None, cfi=None, integer_overflow=None,
               memtag_heap=None, misc_undefined=None, no_recover=None):
    self.undefined = undefined
    self.cfi = cfi
    self.integer_overflow = integer_overflow
    self.memtag_heap = memtag_heap
    self.misc_undefined = list(misc_undefined or [])
    self.no_recover = no_recover


class SanitizePolicy(object):
  """Per-module sanitize properties.

  Boolean fields are tri-state: None means unset, False means explicitly
  disabled (which blocks inheritance from the global policy and the
  propagation of a variation into this module), True means enabled.
  The trailing block holds values derived while processing the graph.
  """

  # Mode -> attribute name of the tri-state field.
  _FIELDS = {
      sanitizer_types.ASAN: 'address',
      sanitizer_types.HWASAN: 'hwaddress',
      sanitizer_types.TSAN: 'thread',
      sanitizer_types.INT_OVERFLOW: 'integer_overflow',
      sanitizer_types.CFI: 'cfi',
      sanitizer_types.SCS: 'scs',
      sanitizer_types.MEMTAG_HEAP: 'memtag_heap',
      sanitizer_types.MEMTAG_STACK: 'memtag_stack',
      sanitizer_types.FUZZER: 'fuzzer',
  }

  def __init__(self, never=None, address=None, thread=None, hwaddress=None,
               all_undefined=None, undefined=None, misc_undefined=None,
               fuzzer=None, safestack=None, cfi=None, integer_overflow=None,
               scudo=None, scs=None, memtag_heap=None, memtag_stack=None,
               writeonly=None, diag=None, cfi_assembly_support=None,
               recover=None, blocklist=None):
    self.never = never
    self.address = address
    self.thread = thread
    self.hwaddress = hwaddress
    self.all_undefined = all_undefined
    self.undefined = undefined
    self.misc_undefined = list(misc_undefined or [])
    self.fuzzer = fuzzer
    self.safestack = safestack
    self.cfi = cfi
    self.integer_overflow = integer_overflow
    self.scudo = scudo
    self.scs = scs
    self.memtag_heap = memtag_heap
    self.memtag_stack = memtag_stack
    self.writeonly = writeonly
    self.diag = diag or DiagProperties()
    self.cfi_assembly_support = cfi_assembly_support
    self.recover = recover
    self.blocklist = blocklist

    self.sanitizer_enabled = False
    self.minimal_runtime_dep = False
    self.ubsan_runtime_dep = False
    self.builtins_dep = False
    self.in_sanitizer_dir = False
    self.sanitizers = []
    self.diag_sanitizers = []

  def _field(self, sanitizer):
    return SanitizePolicy._FIELDS[sanitizer_types.check_sanitizer(sanitizer)]

  def get(self, sanitizer):
    return getattr(self, self._field(sanitizer))

  def is_enabled(self, sanitizer):
    return self.get(sanitizer) is True

  def is_explicitly_disabled(self, sanitizer):
    """True only when the mode was set to False, as opposed to left unset."""
    return self.get(sanitizer) is False

  def set_sanitizer(self, sanitizer, enabled):
    setattr(self, self._field(sanitizer), True if enabled else None)
    if enabled:
      self.sanitizer_enabled = True

  def disable_sanitizer(self, sanitizer):
    setattr(self, self._field(sanitizer), False)

  def is_unsanitized_variant(self):
    return not any(self.is_enabled(t) for t in (
        sanitizer_types.ASAN, sanitizer_types.HWASAN, sanitizer_types.TSAN,
        sanitizer_types.CFI, sanitizer_types.SCS, sanitizer_types.MEMTAG_HEAP,
        sanitizer_types.MEMTAG_STACK, sanitizer_types.FUZZER))

  def is_variant_on_production_device(self):
    return not any(self.is_enabled(t) for t in (
        sanitizer_types.ASAN, sanitizer_types.HWASAN, sanitizer_types.TSAN,
        sanitizer_types.FUZZER))

  def state(self):
    """Returns a comparable snapshot of every field."""
    result = copy.deepcopy(vars(self))
    result['diag'] = vars(result['diag'])
    return result


class DependencyEdge(object):
  def __init__(self, kind, target):
    is_sanitizable_linkage(kind)
    self.kind = kind
    self.target = target

  def is_sanitizable(self):
    return is_sanitizable_linkage(self.kind)

  def __repr__(self):
    return 'DependencyEdge(%s -> %s)' % (self.kind, self.target.variant_name())


class RuntimeDependency(object):
  """A dependency added on a sanitizer runtime library.

  |name| is the library identifier from the toolchain (or its snapshot
  replacement), |kind| is STATIC_DEP or SHARED_DEP.
  """

  def __init__(self, name, kind):
    assert kind in (STATIC_DEP, SHARED_DEP), kind
    self.name = name
    self.kind = kind

  def __eq__(self, other):
    return (isinstance(other, RuntimeDependency) and
            (self.name, self.kind) == (other.name, other.kind))

  def __ne__(self, other):
    return not self == other

  def __hash__(self):
    return hash((self.name, self.kind))

  def __repr__(self):
    return 'RuntimeDependency(%s, %s)' % (self.name, self.kind)


class Module(object):
  """A compilation unit in one variation."""

  def __init__(self, name, kind, os=DEVICE_OS, arch='arm64',
               static_executable=False, test_binary=False, use_sdk=False,
               module_dir='', image=None, role=ROLE_PLATFORM_NATIVE,
               sanitize=None, vndk=False, use_vndk=False,
               vendor_proprietary=False, prebuilt=False, exported_to_make=True,
               enabled=True, bootstrap=False, apex_sanitizers=None,
               snapshot_sanitizers=None, sanitize_minimal_dep=False,
               sanitize_ubsan_dep=False, base_name=None):
    if kind not in ALL_KINDS:
      raise GraphError('%s: unknown module kind %r' % (name, kind))
    if role not in ALL_ROLES:
      raise GraphError('%s: unknown module role %r' % (name, role))
    self.name = name
    self.kind = kind
    self.os = os
    self.arch = arch
    self.toolchain = toolchain.get_toolchain(os, arch)
    self.static_executable = static_executable
    self.test_binary = test_binary
    self.use_sdk = use_sdk
    self.module_dir = module_dir
    if image is None:
      image = CORE_IMAGE if os == DEVICE_OS else HOST_IMAGE
    self.image = image
    self.role = role
    # None when the module carries no sanitize properties at all.
    self.sanitize = sanitize
    self.vndk = vndk
    self.use_vndk = use_vndk
    self.vendor_proprietary = vendor_proprietary
    self.prebuilt = prebuilt
    self.exported_to_make = exported_to_make
    self.enabled = enabled
    self.bootstrap = bootstrap
    # Sanitizer names requested by an apex aggregate itself.
    self.apex_sanitizers = set(apex_sanitizers or [])
    # Variation names a vendor snapshot prebuilt ships sanitized copies of.
    self.snapshot_sanitizers = set(snapshot_sanitizers or [])
    self.sanitize_minimal_dep = sanitize_minimal_dep
    self.sanitize_ubsan_dep = sanitize_ubsan_dep
    # The name make knows a snapshot prebuilt by.
    self.base_name = base_name or name

    self.deps = []
    self.runtime_deps = []
    self.variations = collections.OrderedDict()
    self.prevent_install = False
    self.hide_from_make = False
    # Variation name -> selected ('' or the sanitizer variation) for snapshot
    # prebuilts.
    self.snapshot_variation = {}
    self.flags = None

  # Module facts.
  def is_host(self):
    return self.os != DEVICE_OS

  def is_device(self):
    return self.os == DEVICE_OS

  def is_binary(self):
    return self.kind == BINARY

  def is_static(self):
    return self.kind == STATIC_LIBRARY

  def is_header(self):
    return self.kind == HEADER_LIBRARY

  def is_shared(self):
    return self.kind == SHARED_LIBRARY

  def is_static_binary(self):
    return self.kind == BINARY and self.static_executable

  def is_statically_linked(self):
    return self.is_static()

  def in_vendor(self):
    return self.image == VENDOR_IMAGE

  def in_ramdisk_or_recovery(self):
    return self.image in (RAMDISK_IMAGE, VENDOR_RAMDISK_IMAGE, RECOVERY_IMAGE)

  def sanitize_prop_defined(self):
    return self.sanitize is not None

  def sanitize_never(self):
    return self.sanitize is not None and self.sanitize.never is True

  def is_sanitizer_enabled(self, sanitizer):
    return self.sanitize is not None and self.sanitize.is_enabled(sanitizer)

  def is_sanitizer_explicitly_disabled(self, sanitizer):
    return (self.sanitize is not None and
            self.sanitize.is_explicitly_disabled(sanitizer))

  def sanitizer_supported(self, sanitizer):
    sanitizer_types.check_sanitizer(sanitizer)
    return self.role in (ROLE_PLATFORM_NATIVE, ROLE_SNAPSHOT)

  def is_apex_sanitizer_enabled(self, sanitizer):
    return sanitizer.name in self.apex_sanitizers

  def enable_apex_sanitizer(self, sanitizer):
    self.apex_sanitizers.add(sanitizer.name)

  def is_snapshot_sanitizer_enabled(self, sanitizer):
    return (self.role == ROLE_SNAPSHOT and
            sanitizer.variation_name in self.snapshot_sanitizers)

  # Dependencies.
  def add_dependency(self, kind, target):
    edge = DependencyEdge(kind, target)
    self.deps.append(edge)
    return edge

  def get_variation(self, sanitizer):
    return self.variations.get(sanitizer.variation_name, '')

  def variant_name(self):
    """Returns |name| decorated with the non-base variations."""
    suffix = ','.join('%s' % v for v in self.variations.values() if v)
    if not suffix:
      return self.name
    return '%s{%s}' % (self.name, suffix)

  def clone_for_variation(self, sanitizer, variation):
    """Returns a copy of this module in |variation| of |sanitizer|.

    The sanitize properties are deep-copied so that mutations on one
    variation never leak into another. Edges are copied shallowly and are
    expected to be rewired by the caller.
    """
    result = copy.copy(self)
    result.sanitize = copy.deepcopy(self.sanitize)
    result.deps = list(self.deps)
    result.runtime_deps = list(self.runtime_deps)
    result.variations = collections.OrderedDict(self.variations)
    result.variations[sanitizer.variation_name] = variation
    result.apex_sanitizers = set(self.apex_sanitizers)
    result.snapshot_variation = dict(self.snapshot_variation)
    return result

  def __repr__(self):
    return 'Module(%s)' % self.variant_name()


class ModuleGraph(object):
  """The set of module variations and their edges."""

  def __init__(self, modules=None):
    self._modules = []
    for module in modules or []:
      self.add_module(module)

  def add_module(self, module):
    self._modules.append(module)
    return module

  def modules(self):
    return list(self._modules)

  def replace_modules(self, modules):
    self._modules = list(modules)

  def find(self, name, **variations):
    """Returns the variations of |name| matching the given variation names."""
    result = []
    for module in self._modules:
      if module.name != name:
        continue
      if all(module.variations.get(k, '') == v
             for k, v in variations.items()):
        result.append(module)
    return result

  def find_one(self, name, **variations):
    found = self.find(name, **variations)
    if len(found) != 1:
      raise GraphError('expected exactly one variation of %s matching %s, '
                       'found %s' % (name, variations, found))
    return found[0]

  def reverse_dependencies(self):
    result = collections.defaultdict(list)
    for module in self._modules:
      for edge in module.deps:
        result[id(edge.target)].append((module, edge))
    return result

  def consumers_first(self):
    """Returns modules ordered so that every module follows its consumers.

    Raises GraphError when the graph has a cycle.
    """
    ordered = []
    state = {}
    for root in self._modules:
      if id(root) in state:
        continue
      state[id(root)] = 'visiting'
      # Holds the path from |root| to the module being visited, each entry
      # paired with the deps not yet visited.
      stack = [(root, iter(root.deps))]
      while stack:
        module, deps = stack[-1]
        edge = next(deps, None)
        if edge is None:
          stack.pop()
          state[id(module)] = 'done'
          ordered.append(module)
          continue
        target = edge.target
        key = id(target)
        if state.get(key) == 'done':
          continue
        if state.get(key) == 'visiting':
          path = [m for m, _ in stack] + [target]
          raise GraphError('dependency cycle: %s' % ' -> '.join(
              m.variant_name() for m in path))
        state[key] = 'visiting'
        stack.append((target, iter(target.deps)))
    # |ordered| lists dependencies before their consumers.
    ordered.reverse()
    return ordered

  def dependencies_first(self):
    result = self.consumers_first()
    result.reverse()
    return result

  def walk_deps(self, module, visit):
    """Walks transitive dependencies of |module| depth first.

    |visit| is called as visit(edge, parent) and returns True to descend
    into edge.target.
    """
    stack = [(module, iter(module.deps))]
    while stack:
      parent, deps = stack[-1]
      edge = next(deps, None)
      if edge is None:
        stack.pop()
      elif visit(edge, parent):
        stack.append((edge.target, iter(edge.target.deps)))

# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Sanitizer types and the static metadata attached to each of them."""


class SanitizerConsistencyError(Exception):
  """Raised when a sanitizer query is made for an unknown sanitizer type.

  This is a wiring bug, not a user configuration problem, so it is never
  caught per module.
  """


class SanitizerType(object):
  """One instrumentation family.

  |name| is the name used in the global SANITIZE_HOST/SANITIZE_TARGET style
  lists, |variation_name| names the build variation and is used in exported
  variable names.
  """

  def __init__(self, variation_name, name, creates_variation,
               propagates_through_shared, incompatible_with_cfi,
               exports_both_static_variations, static_suffix=None,
               captured_in_vendor_snapshot=False):
    self.variation_name = variation_name
    self.name = name
    self.creates_variation = creates_variation
    self.propagates_through_shared = propagates_through_shared
    self.incompatible_with_cfi = incompatible_with_cfi
    # cfi, hwasan and scs static libraries are surfaced to make in both
    # variations, disambiguated by |static_suffix|.
    self.exports_both_static_variations = exports_both_static_variations
    self.static_suffix = static_suffix
    # Vendor snapshots capture both variations of static libraries.
    self.captured_in_vendor_snapshot = captured_in_vendor_snapshot

  def __repr__(self):
    return 'SanitizerType(%s)' % self.variation_name


ASAN = SanitizerType('asan', 'address', creates_variation=True,
                     propagates_through_shared=False,
                     incompatible_with_cfi=True,
                     exports_both_static_variations=False)
HWASAN = SanitizerType('hwasan', 'hwaddress', creates_variation=True,
                       propagates_through_shared=False,
                       incompatible_with_cfi=True,
                       exports_both_static_variations=True,
                       static_suffix='.hwasan')
TSAN = SanitizerType('tsan', 'thread', creates_variation=True,
                     propagates_through_shared=True,
                     incompatible_with_cfi=False,
                     exports_both_static_variations=False)
INT_OVERFLOW = SanitizerType('intOverflow', 'integer_overflow',
                             creates_variation=False,
                             propagates_through_shared=True,
                             incompatible_with_cfi=False,
                             exports_both_static_variations=False)
SCS = SanitizerType('scs', 'shadow-call-stack', creates_variation=True,
                    propagates_through_shared=False,
                    incompatible_with_cfi=False,
                    exports_both_static_variations=True,
                    static_suffix='.scs')
FUZZER = SanitizerType('fuzzer', 'fuzzer', creates_variation=True,
                       propagates_through_shared=True,
                       incompatible_with_cfi=True,
                       exports_both_static_variations=False)
MEMTAG_HEAP = SanitizerType('memtag_heap', 'memtag_heap',
                            creates_variation=False,
                            propagates_through_shared=True,
                            incompatible_with_cfi=False,
                            exports_both_static_variations=False)
MEMTAG_STACK = SanitizerType('memtag_stack', 'memtag_stack',
                             creates_variation=False,
                             propagates_through_shared=True,
                             incompatible_with_cfi=False,
                             exports_both_static_variations=False)
CFI = SanitizerType('cfi', 'cfi', creates_variation=True,
                    propagates_through_shared=False,
                    incompatible_with_cfi=False,
                    exports_both_static_variations=True,
                    static_suffix='.cfi',
                    captured_in_vendor_snapshot=True)

# Processing order. cfi is last so that the incompatible sanitizers have
# already cleared it before its own variation is decided.
SANITIZERS = [
    ASAN,
    HWASAN,
    TSAN,
    INT_OVERFLOW,
    SCS,
    FUZZER,
    MEMTAG_HEAP,
    MEMTAG_STACK,
    CFI,
]

_BY_VARIATION_NAME = dict((t.variation_name, t) for t in SANITIZERS)
_BY_NAME = dict((t.name, t) for t in SANITIZERS)


def check_sanitizer(sanitizer):
  """Returns |sanitizer| if it is one of SANITIZERS, raises otherwise."""
  if sanitizer not in SANITIZERS:
    raise SanitizerConsistencyError('unknown SanitizerType %r' % (sanitizer,))
  return sanitizer


def get_by_variation_name(variation_name):
  try:
    return _BY_VARIATION_NAME[variation_name]
  except KeyError:
    raise SanitizerConsistencyError(
        'unknown sanitizer variation %r' % variation_name)


def get_by_name(name):
  try:
    return _BY_NAME[name]
  except KeyError:
    raise SanitizerConsistencyError('unknown sanitizer name %r' % name)


def get_variation_sanitizers():
  """Returns the sanitizers that split the graph, in processing order."""
  return [t for t in SANITIZERS if t.creates_variation]

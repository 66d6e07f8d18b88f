import threading


class CommonEqualityMixin(object):
    """  a deep equals comparison for value objects. """
    local = threading.local()

    def __eq__(self, other):
        if not hasattr(CommonEqualityMixin.local, 'seen'):
            CommonEqualityMixin.local.seen = []
        seen = CommonEqualityMixin.local.seen
        return hasattr(other, '__dict__') and isinstance(other, self.__class__) \
            and self._dicts_equal(other, seen)

    def _dicts_equal(self, other, seen):
        p = (id(self), id(other))
        if p in seen:
            raise ValueError("recursive comparison of %s" % type(self).__name__)

        try:
            seen.append(p)
            result = self.__dict__ == other.__dict__
        finally:
            seen.pop()
        return result

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(tuple(sorted(self.__dict__.items(), key=lambda item: item[0])))

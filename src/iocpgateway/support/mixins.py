def quote(val):
    return "'" + str(val) + "'" if val is not None else "None"


class StringerMixin:

    def __str__(self):
        """
        outputs the class name and the object dictionary in key sorted order
        :return:
        """
        return self.__class__.__name__ + self._sorted_items_string()

    def _sorted_items_string(self):
        return "{" + ", ".join([("'" + str(key)) + "'" + ": " + (quote(val))
                                for key, val in sorted(self.__dict__.items())]) + "}"


class CommonEqualityMixin(object):
    """ value equality for objects that don't change after construction.
        Instances compare and hash by class and attribute values.
    """

    def __eq__(self, other):
        return isinstance(other, self.__class__) and isinstance(self, other.__class__) \
            and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self.__class__.__name__,) + tuple(sorted(self.__dict__.items())))

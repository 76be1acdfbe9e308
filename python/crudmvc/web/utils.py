"""
functions that assist with processing a web service request
"""
import re
from collections import OrderedDict
from urllib.parse import parse_qsl

__all__ = [ 'order_accepts', 'match_accept', 'acceptable', 'media_type', 'parse_form' ]

def order_accepts(accepts):
    """
    order the given accept values according to their q-value.  
    :param accepts:  the list of accept values with their q-values attached.  This can be given either 
                     as a str or a list of str, each representing the value of the HTTP Accept request 
                     header value.
                     :type accepts: str or list of str
    :return:  a list of the mime types in order of q-value.  (The q-values will be dropped.)
    """
    if isinstance(accepts, str):
        accepts = [accepts]

    ranked = []
    for val in accepts:
        for part in val.split(','):
            part = part.strip()
            if not part:
                continue
            q = 1.0
            m = re.search(r';\s*q=(\d+(\.\d+)?)', part)
            if m:
                q = float(m.group(1))
            ranked.append((re.sub(r';.*$', '', part).strip(), q))

    # sort is stable: equally-weighted types keep the client's order
    ranked.sort(key=lambda a: a[1], reverse=True)
    return [a[0] for a in ranked if a[1] > 0]

def match_accept(ctype, accepted):
    """
    return the most specific content type of the two inputs if the two match each other, taking in 
    account wildcards, or None if the two do not match.
    """
    if accepted in ('*', '*/*') or ctype == accepted:
        return ctype
    if accepted.endswith('/*') and ctype.startswith(accepted[:-1]):
        return ctype
    if ctype.endswith('/*') and accepted.startswith(ctype[:-1]):
        return accepted
    return None

def acceptable(ctype, accepts):
    """
    return True if the given content type is compatible with any of the given (ordered) list of
    acceptable types.  An empty list means that the client accepts anything.
    """
    if not accepts:
        return True
    return any(match_accept(ctype, a) for a in accepts)

def media_type(ctype):
    """
    return the media type portion of a Content-Type header value (i.e. without its parameters),
    normalized to lower case; an empty string is returned if the value is empty
    """
    if not ctype:
        return ''
    return ctype.split(';', 1)[0].strip().lower()

def parse_form(body):
    """
    parse an application/x-www-form-urlencoded request body into an ordered dictionary.  If a 
    field appears more than once, the last value wins.
    :param body:  the raw body content
                  :type body: str or bytes
    :raises UnicodeDecodeError:  if a bytes body is not valid UTF-8
    """
    if isinstance(body, bytes):
        body = body.decode('utf-8')
    return OrderedDict(parse_qsl(body, keep_blank_values=True))

import typing as tp

MAX_SUGGESTION_DISTANCE=2
MAX_SUGGESTIONS=3
" number of suggestions attached to a single undefined identifier diagnostic "

def edit_distance(a:str,b:str)->int:
    " levenshtein distance: number of single character insertions, deletions and substitutions "
    if len(a)<len(b):
        a,b=b,a

    previous=list(range(len(b)+1))
    for i,ca in enumerate(a,start=1):
        current=[i]
        for j,cb in enumerate(b,start=1):
            current.append(min(
                previous[j]+1,
                current[j-1]+1,
                previous[j-1]+(ca!=cb),
            ))
        previous=current

    return previous[-1]

def suggest(
    identifier:str,
    candidate_names:tp.Iterable[str],
    max_distance:int=MAX_SUGGESTION_DISTANCE,
    limit:int|None=None,
)->list[str]:
    " candidates within max_distance of identifier, closest first, ties in lexicographic order "
    scored:list[tuple[int,str]]=[]
    for name in set(candidate_names):
        # distance is at least the difference in length
        if abs(len(name)-len(identifier))>max_distance:
            continue

        distance=edit_distance(identifier,name)
        if distance<=max_distance:
            scored.append((distance,name))

    scored.sort()

    ret=[name for _,name in scored]
    if limit is not None:
        return ret[:limit]
    return ret

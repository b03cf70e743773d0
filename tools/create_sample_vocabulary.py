import os
import string
import argparse

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
INPUT_DIR = os.path.join(ROOT, "data", "input")
os.makedirs(INPUT_DIR, exist_ok=True)


def create_vocabulary(n=26, path=None):
    # a..z, then aa..zz, ... until n words
    words = []
    width = 1
    while len(words) < n:
        for i in range(len(string.ascii_lowercase) ** width):
            w, k = "", i
            for _ in range(width):
                w = string.ascii_lowercase[k % 26] + w
                k //= 26
            words.append(w)
            if len(words) >= n:
                break
        width += 1
    path = path or os.path.join(INPUT_DIR, "vocabulary.txt")
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("\n".join(words) + "\n")
    print(f"Created vocabulary of {len(words)} words in: {path}")


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("--size", type=int, default=26)
    p.add_argument("--output", type=str, default=None)
    args = p.parse_args()
    create_vocabulary(args.size, args.output)
